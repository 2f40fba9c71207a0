"""
Per-account Fernet encryption for platform tokens at rest.

Each linked social account gets its own encryption key derived from:
- Master key (TOKEN_ENCRYPTION_KEY in .env)
- Platform + platform user ID (used as salt)

The salt is the row's primary key, never its owner, so a credential can be
relinked to another user/tenant while previously stored tokens (e.g. a
refresh token the new login did not return) stay decryptable.

Uses PBKDF2 for key derivation + Fernet (AES-128-CBC) for encryption.
"""
import base64
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from socialauth.config import settings

# Cache derived keys to avoid repeated derivation (key = "platform:platform_user_id")
_key_cache: dict[str, Fernet] = {}


def _derive_key(platform: str, platform_user_id: str) -> bytes:
    """
    Derive a unique Fernet key for one linked account.

    PBKDF2-HMAC-SHA256 over the master key:
    - salt is "platform:platform_user_id"
    - 32-byte output, urlsafe base64 as Fernet expects
    - 100k iterations
    """
    salt = f"{platform}:{platform_user_id}".encode()
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=100_000,
    )
    derived = kdf.derive(settings.TOKEN_ENCRYPTION_KEY.get_secret_value().encode())
    return base64.urlsafe_b64encode(derived)


def _get_fernet(platform: str, platform_user_id: str) -> Fernet:
    cache_key = f"{platform}:{platform_user_id}"
    if cache_key not in _key_cache:
        _key_cache[cache_key] = Fernet(_derive_key(platform, platform_user_id))
    return _key_cache[cache_key]


def encrypt(plaintext: Optional[str], platform: str, platform_user_id: str) -> Optional[str]:
    """
    Encrypt a token with the account-specific key.

    Empty values (None or "") pass through unchanged so the store can tell
    "not supplied" apart from a real token.

    Returns:
        Fernet token as text
    """
    if not plaintext:
        return plaintext
    if not platform or not platform_user_id:
        raise ValueError("platform and platform_user_id required for encryption")
    return _get_fernet(platform, platform_user_id).encrypt(plaintext.encode()).decode()


def decrypt(ciphertext: Optional[str], platform: str, platform_user_id: str) -> Optional[str]:
    """
    Decrypt a stored token.

    Raises:
        ValueError: If decryption fails (wrong key or corrupted data)
    """
    if not ciphertext:
        return ciphertext
    if not platform or not platform_user_id:
        raise ValueError("platform and platform_user_id required for decryption")
    try:
        return _get_fernet(platform, platform_user_id).decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        raise ValueError("Decryption failed - invalid key or corrupted data")


def clear_key_cache():
    """Drop derived keys, e.g. after TOKEN_ENCRYPTION_KEY changes."""
    _key_cache.clear()
