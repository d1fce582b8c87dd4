"""Tests for GnuPG encryption and the transfer strategies."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from gsdata.config import ConfigurationError
from gsdata.crypto import CipherError, GnuPGCipher
from gsdata.storage import PLAINTEXT_MD5_KEY, PLAINTEXT_SIZE_KEY
from gsdata.sync import EncryptedTransfer, PlainTransfer, select_transfer

from conftest import md5


def completed(returncode=0, stdout=b"", stderr=b""):
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


class TestGnuPGCipher:
    """Command construction and error mapping."""

    def setup_method(self):
        self.cipher = GnuPGCipher(executable="gpg2", timeout=5)

    @patch("gsdata.crypto.gnupg.subprocess.run")
    def test_encrypt_for_every_recipient(self, mock_run):
        mock_run.return_value = completed(stdout=b"ciphertext")

        result = self.cipher.encrypt(b"secret", ["alice@example.com", "bob@example.com"])

        assert result == b"ciphertext"
        cmd = mock_run.call_args.args[0]
        assert cmd[0] == "gpg2"
        assert "--encrypt" in cmd
        assert cmd.count("--recipient") == 2
        assert cmd[-1] == "bob@example.com"
        assert mock_run.call_args.kwargs["input"] == b"secret"

    @patch("gsdata.crypto.gnupg.subprocess.run")
    def test_decrypt(self, mock_run):
        mock_run.return_value = completed(stdout=b"secret")

        assert self.cipher.decrypt(b"ciphertext") == b"secret"
        assert "--decrypt" in mock_run.call_args.args[0]

    def test_encrypt_requires_recipients(self):
        with pytest.raises(CipherError):
            self.cipher.encrypt(b"secret", [])

    @patch("gsdata.crypto.gnupg.subprocess.run")
    def test_nonzero_exit_is_cipher_error(self, mock_run):
        mock_run.return_value = completed(returncode=2, stderr=b"public key not found")

        with pytest.raises(CipherError, match="public key not found"):
            self.cipher.encrypt(b"secret", ["nobody@example.com"])

    @patch("gsdata.crypto.gnupg.subprocess.run", side_effect=FileNotFoundError())
    def test_missing_executable(self, mock_run):
        with pytest.raises(CipherError, match="not found"):
            self.cipher.decrypt(b"x")

    @patch("gsdata.crypto.gnupg.subprocess.run",
           side_effect=subprocess.TimeoutExpired(cmd="gpg2", timeout=5))
    def test_timeout(self, mock_run):
        with pytest.raises(CipherError, match="timed out"):
            self.cipher.decrypt(b"x")


class TestTransfer:
    """Plain and encrypted payload transforms."""

    @pytest.mark.asyncio
    async def test_plain_is_identity(self):
        transfer = PlainTransfer()
        payload = await transfer.encode(b"data")

        assert payload.data == b"data"
        assert payload.metadata == {}
        assert await transfer.decode(b"data") == b"data"

    @pytest.mark.asyncio
    async def test_encrypted_records_plaintext_tags(self, cipher):
        transfer = EncryptedTransfer(cipher, ["ops@example.com"])

        payload = await transfer.encode(b"alpha")

        assert payload.data != b"alpha"
        assert payload.metadata == {PLAINTEXT_MD5_KEY: md5(b"alpha"), PLAINTEXT_SIZE_KEY: "5"}
        assert await transfer.decode(payload.data) == b"alpha"

    def test_select_transfer(self, cipher):
        assert isinstance(select_transfer(None), PlainTransfer)
        assert isinstance(select_transfer(cipher, ["ops@example.com"]), EncryptedTransfer)
        assert isinstance(select_transfer(cipher, decrypt=True), EncryptedTransfer)

    def test_encryption_without_cipher(self):
        with pytest.raises(ConfigurationError):
            select_transfer(None, ["ops@example.com"])

    @patch("gsdata.crypto.gnupg.shutil.which", return_value=None)
    def test_missing_gpg_is_configuration_error(self, mock_which):
        with pytest.raises(ConfigurationError, match="not available"):
            select_transfer(GnuPGCipher(), ["ops@example.com"])

    @patch("gsdata.crypto.gnupg.shutil.which", return_value=None)
    def test_plain_transfer_does_not_need_gpg(self, mock_which):
        assert isinstance(select_transfer(GnuPGCipher()), PlainTransfer)
