"""
Embedded store launcher.

Runs the store server binary as a child process of the start command. The
store's own protocol and persistence are owned by that binary; this module
only decides its addresses and data directory.
"""

import atexit
import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

STORE_BINARY = "etcd"
PEER_PORT = 7001


@dataclass
class EmbeddedStoreConfig:
    bind_addr: str
    peer_bind_addr: str
    master_addr: str
    etcd_dir: str
    name: str = "openshift.local"
    binary: str = STORE_BINARY
    process: Optional[subprocess.Popen] = field(default=None, repr=False)

    def command(self) -> List[str]:
        """Build the store server command line."""
        return [
            self.binary,
            "-name", self.name,
            "-data-dir", self.etcd_dir,
            "-addr", self.master_addr,
            "-bind-addr", f"{self.bind_addr}:{self.master_addr.rsplit(':', 1)[-1]}",
            "-peer-addr", f"{self.master_addr.rsplit(':', 1)[0]}:{PEER_PORT}",
            "-peer-bind-addr", f"{self.peer_bind_addr}:{PEER_PORT}",
        ]

    def run(self) -> subprocess.Popen:
        """
        Start the store server in the background.

        Raises:
            FileNotFoundError: The store binary is not on PATH
        """
        if shutil.which(self.binary) is None:
            raise FileNotFoundError(f"{self.binary} binary not found on PATH")

        Path(self.etcd_dir).mkdir(parents=True, exist_ok=True)
        cmd = self.command()
        logger.info(f"Starting embedded store: {' '.join(cmd)}")
        self.process = subprocess.Popen(cmd)
        atexit.register(self.stop)
        logger.info(f"Embedded store started (pid={self.process.pid}, data={self.etcd_dir})")
        return self.process

    def stop(self) -> None:
        if self.process is None or self.process.poll() is not None:
            return
        logger.info("Stopping embedded store...")
        self.process.terminate()
        try:
            self.process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            self.process.kill()
