"""Upload and download transforms, chosen once per run."""

import asyncio
import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

from ..config.loader import ConfigurationError
from ..crypto import Cipher
from ..storage.base import PLAINTEXT_MD5_KEY, PLAINTEXT_SIZE_KEY


@dataclass
class Payload:
    """Bytes to upload and the object metadata to store with them."""

    data: bytes
    metadata: Dict[str, str] = field(default_factory=dict)


class TransferStrategy(ABC):
    """Transforms content on its way to and from the bucket."""

    encrypted: bool = False

    @abstractmethod
    async def encode(self, data: bytes) -> Payload:
        """Prepare local content for upload."""

    @abstractmethod
    async def decode(self, data: bytes) -> bytes:
        """Restore downloaded content."""


class PlainTransfer(TransferStrategy):
    """Content is stored as-is."""

    async def encode(self, data: bytes) -> Payload:
        return Payload(data)

    async def decode(self, data: bytes) -> bytes:
        return data


class EncryptedTransfer(TransferStrategy):
    """Content is encrypted for a fixed recipient list.

    The plaintext digest and size travel as object metadata so later runs can
    compare local files against encrypted objects.
    """

    encrypted = True

    def __init__(self, cipher: Cipher, recipients: Sequence[str] = ()):
        self.cipher = cipher
        self.recipients: Tuple[str, ...] = tuple(recipients)

    async def encode(self, data: bytes) -> Payload:
        if not self.recipients:
            raise ConfigurationError("Encryption requested without recipients")
        loop = asyncio.get_running_loop()
        encrypted = await loop.run_in_executor(None, self.cipher.encrypt, data, self.recipients)
        return Payload(
            encrypted,
            {
                PLAINTEXT_MD5_KEY: hashlib.md5(data).hexdigest(),
                PLAINTEXT_SIZE_KEY: str(len(data)),
            }
        )

    async def decode(self, data: bytes) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.cipher.decrypt, data)


def select_transfer(
    cipher: Optional[Cipher],
    recipients: Sequence[str] = (),
    decrypt: bool = False
) -> TransferStrategy:
    """Pick the strategy for a run.

    Recipients select encryption for uploads; ``decrypt`` selects decryption
    for downloads.

    Raises:
        ConfigurationError: If encryption or decryption is wanted and no usable cipher is configured
    """
    if not recipients and not decrypt:
        return PlainTransfer()
    if cipher is None:
        raise ConfigurationError("Encryption requested but no cipher is configured")
    if not cipher.available():
        raise ConfigurationError(f"Encryption requested but {cipher} is not available")
    return EncryptedTransfer(cipher, recipients)
