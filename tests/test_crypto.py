"""Tests for credential encryption."""

import pytest

from blueprint_wizard.engine.crypto import CredentialEncryptor, FernetEncryptor
from blueprint_wizard.engine.errors import EncryptionError


def test_encryptor_is_abstract():
    with pytest.raises(TypeError):
        CredentialEncryptor()


def test_ciphertext_hides_plaintext():
    encryptor = FernetEncryptor()

    token = encryptor.encrypt('{"client_secret": "s3cret"}')

    assert "s3cret" not in token
    assert encryptor.decrypt(token) == '{"client_secret": "s3cret"}'


def test_configured_key_decrypts_later():
    key = FernetEncryptor.generate_key()
    token = FernetEncryptor(key).encrypt("value")

    assert FernetEncryptor(key).decrypt(token) == "value"
    assert FernetEncryptor(key.encode()).key == key


def test_wrong_key():
    token = FernetEncryptor().encrypt("value")

    with pytest.raises(EncryptionError, match="cannot be decrypted"):
        FernetEncryptor().decrypt(token)


def test_invalid_key():
    with pytest.raises(EncryptionError, match="Invalid Fernet key"):
        FernetEncryptor("not-a-key")
