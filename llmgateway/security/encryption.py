"""Secret-at-rest encryption for provider credentials."""

from __future__ import annotations

import base64
import os
import subprocess
from abc import ABC, abstractmethod


SECRET_KEY_ENV = "PROVIDER_SECRET_KEY"


class EncryptionError(ValueError):
    """Raised when a provider secret cannot be encrypted or decrypted."""


class KeyEncryptor(ABC):
    """Interface for pluggable provider-secret encryption."""

    @abstractmethod
    def encrypt(self, plaintext: str) -> str:
        """Encrypt plaintext and return ciphertext."""

    @abstractmethod
    def decrypt(self, ciphertext: str) -> str:
        """Decrypt ciphertext and return plaintext."""

    def is_encrypted(self, value: str) -> bool:
        return False


class OpenSSLEncryptor(KeyEncryptor):
    """
    AES-256-CBC with PBKDF2 key derivation via the openssl binary.

    Ciphertext is stored as ``enc:v1:<urlsafe base64>``.
    """

    PREFIX = "enc:v1:"
    ITERATIONS = "200000"

    def __init__(self, master_key: str):
        if not master_key:
            raise EncryptionError(f"{SECRET_KEY_ENV} must be configured to store provider credentials")
        self._master_key = master_key

    def _run_openssl(self, decrypt: bool, payload: bytes) -> bytes:
        args = [
            "openssl",
            "enc",
            "-aes-256-cbc",
            "-pbkdf2",
            "-iter",
            self.ITERATIONS,
            "-pass",
            f"pass:{self._master_key}",
        ]
        if decrypt:
            args.insert(3, "-d")

        try:
            proc = subprocess.run(
                args,
                input=payload,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
            )
        except FileNotFoundError as exc:
            raise EncryptionError("OpenSSL binary not found") from exc

        if proc.returncode != 0:
            action = "decrypt" if decrypt else "encrypt"
            raise EncryptionError(f"Failed to {action} provider secret with configured {SECRET_KEY_ENV}")
        return proc.stdout

    def is_encrypted(self, value: str) -> bool:
        return bool(value) and value.startswith(self.PREFIX)

    def encrypt(self, plaintext: str) -> str:
        if plaintext is None:
            raise EncryptionError("Cannot encrypt empty secret")
        encrypted = self._run_openssl(decrypt=False, payload=plaintext.encode("utf-8"))
        return f"{self.PREFIX}{base64.urlsafe_b64encode(encrypted).decode('utf-8')}"

    def decrypt(self, ciphertext: str) -> str:
        if not self.is_encrypted(ciphertext):
            raise EncryptionError("Unsupported ciphertext format")
        data = base64.urlsafe_b64decode(ciphertext[len(self.PREFIX):].encode("utf-8"))
        plaintext = self._run_openssl(decrypt=True, payload=data)
        return plaintext.decode("utf-8")


def default_encryptor_from_env() -> KeyEncryptor:
    """Create the default encryptor from PROVIDER_SECRET_KEY."""
    return OpenSSLEncryptor(os.getenv(SECRET_KEY_ENV, ""))
