"""Credential encryption collaborators."""

from abc import ABC, abstractmethod
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken

from .errors import EncryptionError


class CredentialEncryptor(ABC):
    """Turns plaintext credentials into ciphertext before they touch storage."""

    name: str = "custom"

    @abstractmethod
    def encrypt(self, plaintext: str) -> str:
        pass


class FernetEncryptor(CredentialEncryptor):
    """Symmetric encryption with cryptography's Fernet (AES-128-CBC + HMAC)."""

    name = "fernet"

    def __init__(self, key: Optional[Union[str, bytes]] = None):
        """
        Args:
            key: urlsafe base64 Fernet key. A fresh key is generated when omitted;
                read it back from `key` to be able to decrypt later.
        """
        if key is None:
            key = Fernet.generate_key()
        if isinstance(key, str):
            key = key.encode()
        try:
            self._fernet = Fernet(key)
        except (ValueError, TypeError) as e:
            raise EncryptionError(f"Invalid Fernet key: {e}") from e
        self.key = key.decode()

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except InvalidToken as e:
            raise EncryptionError("Credentials cannot be decrypted with this key") from e
