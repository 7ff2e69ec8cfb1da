"""
Container runtime handle for the node.
"""

import logging
import os
import shutil
import subprocess
from typing import List, Optional

logger = logging.getLogger(__name__)


class DockerHelper:
    """Locates the container runtime and checks that it answers."""

    def __init__(self, endpoint: Optional[str] = None, binary: str = "docker"):
        self.endpoint = endpoint or os.getenv("DOCKER_HOST") or None
        self.binary = binary

    def _command(self, *args: str) -> List[str]:
        cmd = [self.binary]
        if self.endpoint:
            cmd += ["-H", self.endpoint]
        return cmd + list(args)

    def ping(self, timeout: float = 10.0) -> str:
        """
        Return the runtime server version.

        Raises:
            RuntimeError: The runtime is missing or does not answer
        """
        if shutil.which(self.binary) is None:
            raise RuntimeError(f"{self.binary} binary not found on PATH")
        try:
            result = subprocess.run(
                self._command("version", "--format", "{{.Server.Version}}"),
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            raise RuntimeError(f"{self.binary} did not answer within {timeout}s")
        if result.returncode != 0:
            raise RuntimeError(f"{self.binary} is not reachable: {result.stderr.strip()}")
        return result.stdout.strip()
