"""
Cluster Certificate Authority

Creates or loads the signing CA under the certificate directory and issues
server and client identities from it.

On-disk layout:
    <cert_dir>/root.crt         active CA first, then every root ever trusted here
    <cert_dir>/root.key         active CA private key
    <cert_dir>/<name>/cert.crt  issued certificate
    <cert_dir>/<name>/key.key   issued private key
    <cert_dir>/<name>/root.crt  roots bundle (client identities only)
    <cert_dir>/<name>/.kubeconfig  client config (client identities only)

Material already on disk always wins over regeneration as long as it was
issued by the active CA and still covers what is asked for.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import yaml
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from shared.clientconfig import ClientConfig

logger = logging.getLogger(__name__)

CA_CERT_FILE = "root.crt"
CA_KEY_FILE = "root.key"
CERT_FILE = "cert.crt"
KEY_FILE = "key.key"
CLIENT_CONFIG_FILE = ".kubeconfig"

KEY_SIZE = 2048
CA_LIFETIME = timedelta(days=5 * 365)
CERT_LIFETIME = timedelta(days=2 * 365)
CLOCK_SKEW = timedelta(minutes=1)


@dataclass(frozen=True)
class TLSCertificateConfig:
    """An issued identity: certificate, private key and where they live."""
    name: str
    cert_file: str
    key_file: str
    certificate: x509.Certificate
    key: rsa.RSAPrivateKey


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=KEY_SIZE)


def _key_matches(cert: x509.Certificate, key: rsa.RSAPrivateKey) -> bool:
    return cert.public_key().public_numbers() == key.public_key().public_numbers()


def _cert_pem(*certs: x509.Certificate) -> bytes:
    return b"".join(c.public_bytes(serialization.Encoding.PEM) for c in certs)


def _key_pem(key: rsa.RSAPrivateKey) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _write(path: Path, data: bytes, mode: int = 0o644) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    path.chmod(mode)


def _load_key(path: Path) -> rsa.RSAPrivateKey:
    key = serialization.load_pem_private_key(path.read_bytes(), password=None)
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ValueError(f"{path} does not hold an RSA private key")
    return key


def _san_entries(hostnames: Sequence[str]) -> List[x509.GeneralName]:
    entries: List[x509.GeneralName] = []
    for host in hostnames:
        try:
            entries.append(x509.IPAddress(ipaddress.ip_address(host)))
        except ValueError:
            entries.append(x509.DNSName(host))
    return entries


def _covered_hosts(cert: x509.Certificate) -> set:
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except x509.ExtensionNotFound:
        return set()
    hosts = {str(ip) for ip in san.get_values_for_type(x509.IPAddress)}
    hosts.update(san.get_values_for_type(x509.DNSName))
    return hosts


class CertificateAuthority:
    """
    Signing CA for one certificate directory.

    Usage:
        ca = init_ca("openshift.local.certificates", "10.0.0.5@1700000000")
        server = ca.make_server_cert("master-server", ["10.0.0.5", "localhost"])
        client = ca.make_client_config("admin-client", ClientConfig(host="https://10.0.0.5:8443"))
    """

    def __init__(self, cert_dir: str, certificate: x509.Certificate, key: rsa.RSAPrivateKey,
                 roots: Sequence[x509.Certificate]):
        self.cert_dir = Path(cert_dir)
        self.certificate = certificate
        self.key = key
        self._roots: Tuple[x509.Certificate, ...] = tuple(roots)

    @property
    def roots(self) -> Tuple[x509.Certificate, ...]:
        """Every root trusted in this directory, active CA first."""
        return self._roots

    @property
    def roots_file(self) -> str:
        return str(self.cert_dir / CA_CERT_FILE)

    def _issued_by_me(self, cert: x509.Certificate) -> bool:
        if cert.issuer != self.certificate.subject:
            return False
        try:
            cert.verify_directly_issued_by(self.certificate)
        except (ValueError, TypeError, InvalidSignature):
            return False
        return cert.not_valid_after_utc > _now()

    def _load_existing(self, name: str, hostnames: Optional[Sequence[str]] = None) -> Optional[TLSCertificateConfig]:
        """Return on-disk material for ``name`` if it can be reused as is."""
        cert_path = self.cert_dir / name / CERT_FILE
        key_path = self.cert_dir / name / KEY_FILE
        if not cert_path.exists() or not key_path.exists():
            return None

        try:
            cert = x509.load_pem_x509_certificate(cert_path.read_bytes())
            key = _load_key(key_path)
        except ValueError as e:
            logger.warning(f"Ignoring unreadable certificate for {name}: {e}")
            return None

        if not _key_matches(cert, key) or not self._issued_by_me(cert):
            logger.info(f"Certificate for {name} was not issued by the current CA, reissuing")
            return None
        if hostnames is not None and not set(hostnames) <= _covered_hosts(cert):
            logger.info(f"Certificate for {name} does not cover {sorted(hostnames)}, reissuing")
            return None

        return TLSCertificateConfig(name, str(cert_path), str(key_path), cert, key)

    def _sign(self, name: str, subject_cn: str, usage, hostnames: Sequence[str] = ()) -> TLSCertificateConfig:
        key = _new_key()
        now = _now()
        builder = (
            x509.CertificateBuilder()
            .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, subject_cn)]))
            .issuer_name(self.certificate.subject)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - CLOCK_SKEW)
            .not_valid_after(now + CERT_LIFETIME)
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True, key_encipherment=True, content_commitment=False,
                    data_encipherment=False, key_agreement=False, key_cert_sign=False,
                    crl_sign=False, encipher_only=False, decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(x509.ExtendedKeyUsage([usage]), critical=False)
        )
        if hostnames:
            builder = builder.add_extension(x509.SubjectAlternativeName(_san_entries(hostnames)), critical=False)
        cert = builder.sign(private_key=self.key, algorithm=hashes.SHA256())

        cert_path = self.cert_dir / name / CERT_FILE
        key_path = self.cert_dir / name / KEY_FILE
        _write(cert_path, _cert_pem(cert))
        _write(key_path, _key_pem(key), 0o600)
        logger.info(f"Issued certificate for {name} (serial={cert.serial_number:x})")
        return TLSCertificateConfig(name, str(cert_path), str(key_path), cert, key)

    def make_server_cert(self, name: str, hostnames: Sequence[str]) -> TLSCertificateConfig:
        """Server identity valid for every entry of ``hostnames`` (IPs or DNS names)."""
        if not hostnames:
            raise ValueError("a server certificate needs at least one hostname")
        existing = self._load_existing(name, hostnames)
        if existing is not None:
            logger.info(f"Reusing server certificate for {name}")
            return existing
        return self._sign(name, hostnames[0], ExtendedKeyUsageOID.SERVER_AUTH, hostnames)

    def make_client_cert(self, name: str) -> TLSCertificateConfig:
        existing = self._load_existing(name)
        if existing is not None:
            logger.info(f"Reusing client certificate for {name}")
            return existing
        return self._sign(name, name, ExtendedKeyUsageOID.CLIENT_AUTH)

    def make_client_config(self, name: str, template: ClientConfig) -> ClientConfig:
        """
        Issue a client identity for ``name`` and return ``template`` pointed at it.

        Also writes the roots bundle and a client config file next to the
        identity so command line tools can use it directly.
        """
        identity = self.make_client_cert(name)
        client_dir = self.cert_dir / name
        ca_path = client_dir / CA_CERT_FILE
        _write(ca_path, _cert_pem(*self.roots))

        config = replace(template, cert_file=identity.cert_file, key_file=identity.key_file, ca_file=str(ca_path))
        write_client_config_file(client_dir / CLIENT_CONFIG_FILE, name, config)
        return config


def write_client_config_file(path: Path, name: str, config: ClientConfig) -> None:
    document = {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{"name": "master", "cluster": {
            "server": config.host,
            "api-version": config.version,
            "certificate-authority": config.ca_file,
        }}],
        "users": [{"name": name, "user": {
            "client-certificate": config.cert_file,
            "client-key": config.key_file,
        }}],
        "contexts": [{"name": name, "context": {"cluster": "master", "user": name}}],
        "current-context": name,
    }
    _write(path, yaml.safe_dump(document, default_flow_style=False).encode("utf-8"), 0o600)


def _create_ca_cert(name: str) -> Tuple[x509.Certificate, rsa.RSAPrivateKey]:
    key = _new_key()
    now = _now()
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, name)])
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - CLOCK_SKEW)
        .not_valid_after(now + CA_LIFETIME)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True, key_encipherment=False, content_commitment=False,
                data_encipherment=False, key_agreement=False, key_cert_sign=True,
                crl_sign=True, encipher_only=False, decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .sign(private_key=key, algorithm=hashes.SHA256())
    )
    return cert, key


def _merge_roots(active: x509.Certificate, previous: Sequence[x509.Certificate]) -> List[x509.Certificate]:
    roots = [active]
    seen = {active.fingerprint(hashes.SHA256())}
    for cert in previous:
        fingerprint = cert.fingerprint(hashes.SHA256())
        if fingerprint not in seen:
            seen.add(fingerprint)
            roots.append(cert)
    return roots


def init_ca(cert_dir: str, name: str) -> CertificateAuthority:
    """
    Load the CA stored in ``cert_dir``, or create one named ``name``.

    A new CA is only created when no usable key/certificate pair exists
    or the active CA certificate has expired.
    Roots already listed in the bundle are kept, so identities issued by an
    earlier CA remain verifiable.

    Raises:
        OSError: Certificate directory I/O failed
        ValueError: Stored material could not be parsed
    """
    directory = Path(cert_dir)
    cert_path = directory / CA_CERT_FILE
    key_path = directory / CA_KEY_FILE

    previous: List[x509.Certificate] = []
    if cert_path.exists():
        previous = x509.load_pem_x509_certificates(cert_path.read_bytes())

    if previous and key_path.exists():
        key = _load_key(key_path)
        if not _key_matches(previous[0], key):
            logger.warning(f"CA key in {directory} does not match {CA_CERT_FILE}, creating a new authority")
        elif previous[0].not_valid_after_utc <= _now():
            logger.warning(
                f"Certificate authority in {directory} expired on {previous[0].not_valid_after_utc}, "
                "creating a new authority"
            )
        else:
            logger.info(f"Using existing certificate authority in {directory} ({previous[0].subject.rfc4514_string()})")
            return CertificateAuthority(cert_dir, previous[0], key, previous)

    cert, key = _create_ca_cert(name)
    roots = _merge_roots(cert, previous)
    _write(key_path, _key_pem(key), 0o600)
    _write(cert_path, _cert_pem(*roots))
    logger.info(f"Created certificate authority {name!r} in {directory} ({len(roots)} trusted roots)")
    return CertificateAuthority(cert_dir, cert, key, roots)
