import base64
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from .config import get_settings


class DecryptionError(ValueError):
    """Raised when a stored secret cannot be decrypted with the current key"""
    pass


def _get_fernet() -> Fernet:
    """Derive the Fernet key from the application secret key"""
    password = get_settings().secret_key.encode()
    salt = b'stable_salt_for_integration_configs'
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=100000,
    )
    return Fernet(base64.urlsafe_b64encode(kdf.derive(password)))


def encrypt_data(data: str) -> str:
    """Encrypt sensitive data such as API tokens"""
    if not data:
        return data
    return _get_fernet().encrypt(data.encode()).decode()


def decrypt_data(encrypted_data: str) -> str:
    """Decrypt sensitive data"""
    if not encrypted_data:
        return encrypted_data

    try:
        return _get_fernet().decrypt(encrypted_data.encode()).decode()
    except InvalidToken as e:
        raise DecryptionError("Stored secret could not be decrypted; was the secret key rotated?") from e
