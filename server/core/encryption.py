import logging
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from core.config import settings
from core.errors import CredentialError

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
IV_LENGTH = 16


def _load_key(hex_key: str) -> bytes:
    if not hex_key:
        raise ValueError("ENCRYPTION_KEY is not set in settings.")
    try:
        key = bytes.fromhex(hex_key)
    except ValueError:
        raise ValueError("ENCRYPTION_KEY must be a hex string.")
    if len(key) != KEY_LENGTH:
        raise ValueError(
            f"ENCRYPTION_KEY must be {KEY_LENGTH} bytes ({KEY_LENGTH * 2} hex characters). "
            "Generate with: openssl rand -hex 32"
        )
    return key


try:
    _key = _load_key(settings.ENCRYPTION_KEY)
except ValueError as e:
    logger.error(f"Failed to load encryption key: {e}")
    raise


def encrypt(plaintext: str) -> tuple[str, str]:
    """
    Encrypts a plaintext string with AES-256-CBC.

    Returns the hex ciphertext and the hex IV, which must be stored together.
    """
    if not plaintext:
        raise ValueError("Cannot encrypt empty value")

    iv = os.urandom(IV_LENGTH)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(_key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return ciphertext.hex(), iv.hex()


def decrypt(ciphertext: str, iv_hex: str) -> str:
    """
    Decrypts a value produced by `encrypt`.

    Raises CredentialError on any failure; the underlying crypto error is only logged.
    """
    if not ciphertext or not iv_hex:
        raise CredentialError(
            "Please re-configure your API key in Settings.",
            error="Failed to decrypt API key",
            status_code=500,
        )

    try:
        decryptor = Cipher(
            algorithms.AES(_key), modes.CBC(bytes.fromhex(iv_hex))
        ).decryptor()
        padded = decryptor.update(bytes.fromhex(ciphertext)) + decryptor.finalize()

        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return plaintext.decode("utf-8")
    except ValueError as e:
        logger.error(f"Decryption failed: {e}")
        raise CredentialError(
            "Please re-configure your API key in Settings.",
            error="Failed to decrypt API key",
            status_code=500,
        )
