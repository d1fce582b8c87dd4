"""GnuPG encryption for object payloads."""

import shutil
import subprocess
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..utils.logging import get_logger

logger = get_logger(__name__)


class CipherError(Exception):
    """Raised when encryption or decryption fails."""
    pass


class Cipher(ABC):
    """Byte-for-byte encryption capability."""

    @abstractmethod
    def encrypt(self, data: bytes, recipients: Sequence[str]) -> bytes:
        """Encrypt ``data`` for every recipient."""

    @abstractmethod
    def decrypt(self, data: bytes) -> bytes:
        """Decrypt ``data`` with the local keyring."""

    def available(self) -> bool:
        """Whether the capability can be used on this host."""
        return True


class GnuPGCipher(Cipher):
    """Cipher backed by the ``gpg`` executable on the PATH."""

    def __init__(self, executable: str = "gpg", timeout: Optional[float] = 300):
        self.executable = executable
        self.timeout = timeout

    def __str__(self) -> str:
        return self.executable

    def available(self) -> bool:
        return shutil.which(self.executable) is not None

    def encrypt(self, data: bytes, recipients: Sequence[str]) -> bytes:
        if not recipients:
            raise CipherError("At least one recipient is required for encryption")

        cmd = [self.executable, "--batch", "--yes", "--trust-model", "always", "--encrypt"]
        for recipient in recipients:
            cmd.extend(["--recipient", recipient])
        return self._run(cmd, data, "encryption")

    def decrypt(self, data: bytes) -> bytes:
        return self._run([self.executable, "--batch", "--yes", "--decrypt"], data, "decryption")

    def _run(self, cmd: List[str], data: bytes, operation: str) -> bytes:
        try:
            result = subprocess.run(
                cmd,
                input=data,
                capture_output=True,
                check=False,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise CipherError(f"{self.executable} not found in PATH") from e
        except subprocess.TimeoutExpired as e:
            raise CipherError(f"GPG {operation} timed out after {self.timeout}s") from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            logger.error("GPG failed", operation=operation, returncode=result.returncode, stderr=stderr)
            raise CipherError(f"GPG {operation} failed: {stderr}")

        return result.stdout
