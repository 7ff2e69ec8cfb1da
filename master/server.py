"""
Background HTTP(S) listener.

Runs a FastAPI app under uvicorn in its own thread, the same way every
cluster service here runs its control and management listeners.
"""

import logging
import ssl
import threading
import time
from typing import Optional

import uvicorn

logger = logging.getLogger(__name__)


class ServerThread:
    """
    One uvicorn listener on a background thread.

    ``start()`` returns only once the listener accepts connections.
    """

    def __init__(
        self,
        name: str,
        app,
        host: str,
        port: int,
        cert_file: Optional[str] = None,
        key_file: Optional[str] = None,
        client_ca_file: Optional[str] = None,
    ):
        """
        Args:
            name: Listener name for logging
            app: ASGI application
            host: Bind host
            port: Bind port
            cert_file: Server certificate (enables TLS)
            key_file: Server private key
            client_ca_file: Roots used to verify client certificates
        """
        self.name = name
        self.host = host
        self.port = port

        kwargs = {}
        if cert_file and key_file:
            kwargs.update(ssl_certfile=cert_file, ssl_keyfile=key_file)
            if client_ca_file:
                kwargs.update(ssl_ca_certs=client_ca_file, ssl_cert_reqs=ssl.CERT_OPTIONAL)
        self.tls = bool(kwargs)

        self.config = uvicorn.Config(app, host=host, port=port, log_level="info", access_log=False, **kwargs)
        self.server = uvicorn.Server(self.config)
        self.thread: Optional[threading.Thread] = None

    def start(self, timeout_seconds: float = 10.0) -> None:
        """
        Start serving and wait for the listener to come up.

        Raises:
            RuntimeError: The listener exited or did not start in time
        """
        self.thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self.thread.start()

        deadline = time.monotonic() + timeout_seconds
        while not self.server.started:
            if not self.thread.is_alive():
                raise RuntimeError(f"{self.name} listener exited during startup")
            if time.monotonic() > deadline:
                raise RuntimeError(f"{self.name} listener did not start within {timeout_seconds}s")
            time.sleep(0.05)

        scheme = "https" if self.tls else "http"
        logger.info(f"{self.name} listening on {scheme}://{self.host}:{self.port}")

    def _run(self) -> None:
        try:
            self.server.run()
        except Exception as e:
            logger.error(f"{self.name} server error: {e}", exc_info=True)

    def stop(self) -> None:
        self.server.should_exit = True
        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=5)
