import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from app.core.config import settings
from app.core.exceptions import CryptoError


def _fernet(passphrase: str = None) -> Fernet:
    # Fernet wants 32 url-safe base64 bytes; derive them from the configured passphrase
    digest = hashlib.sha256((passphrase or settings.TOKEN_ENCRYPTION_KEY).encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encrypt(plaintext: str, passphrase: str = None) -> str:
    return _fernet(passphrase).encrypt(plaintext.encode("utf-8")).decode("ascii")


def decrypt(ciphertext: str, passphrase: str = None) -> str:
    try:
        return _fernet(passphrase).decrypt(ciphertext.encode("ascii")).decode("utf-8")
    except (InvalidToken, ValueError) as e:
        raise CryptoError("Stored secret could not be decrypted") from e
