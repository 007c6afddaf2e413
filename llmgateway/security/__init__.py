"""Security primitives."""

from .encryption import (
    SECRET_KEY_ENV,
    EncryptionError,
    KeyEncryptor,
    OpenSSLEncryptor,
    default_encryptor_from_env,
)

__all__ = [
    "SECRET_KEY_ENV",
    "EncryptionError",
    "KeyEncryptor",
    "OpenSSLEncryptor",
    "default_encryptor_from_env",
]
