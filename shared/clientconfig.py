"""
API client configuration shared by every internal client of the master.
"""

from dataclasses import dataclass
from typing import Optional

import requests

API_VERSION = "v1beta1"


@dataclass(frozen=True)
class ClientConfig:
    """Where a client connects and, over TLS, which identity it presents."""
    host: str
    version: str = API_VERSION
    cert_file: str = ""
    key_file: str = ""
    ca_file: str = ""

    @property
    def has_identity(self) -> bool:
        return bool(self.cert_file and self.key_file)

    def url(self, path: str) -> str:
        return f"{self.host.rstrip('/')}/{path.lstrip('/')}"

    def build_session(self, session: Optional[requests.Session] = None) -> requests.Session:
        """Return a requests session that presents this identity and trusts ``ca_file``."""
        session = session or requests.Session()
        if self.has_identity:
            session.cert = (self.cert_file, self.key_file)
        if self.ca_file:
            session.verify = self.ca_file
        return session
