"""Payload encryption."""

from .gnupg import Cipher, CipherError, GnuPGCipher

__all__ = ["Cipher", "CipherError", "GnuPGCipher"]
