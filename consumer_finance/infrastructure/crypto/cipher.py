"""AES-256-GCM field encryption for personally-identifiable and financial data"""

import base64
import binascii
import hashlib
import hmac
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from consumer_finance.domain.exceptions import CryptoFailure

KEY_SIZE_BYTES = 32
NONCE_SIZE_BYTES = 12
TAG_SIZE_BYTES = 16
_FINGERPRINT_INFO = b"consumer-finance/field-fingerprint"


class Cipher:
    """
    Encrypts individual string fields with AES-GCM.

    Blob format: base64(nonce[12] || ciphertext || tag[16]). A fresh random
    nonce is drawn for every call to ``encrypt``; the instance keeps no
    counter or nonce state that could be replayed.

    The instance owns its key for the lifetime of the process. Keys are not
    rotated in place: rotation means generating a new key with
    ``generate_new_key`` and re-encrypting stored blobs in a batch migration.
    """

    def __init__(self, key: bytes):
        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE_BYTES:
            raise CryptoFailure(f"Encryption key must be exactly {KEY_SIZE_BYTES} bytes")
        try:
            self._aead = AESGCM(bytes(key))
        except (ValueError, TypeError) as e:
            raise CryptoFailure(f"Failed to initialize cipher: {e}") from e
        self._fingerprint_key = HKDF(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE_BYTES,
            salt=None,
            info=_FINGERPRINT_INFO,
        ).derive(bytes(key))

    @classmethod
    def from_base64_key(cls, encoded: str) -> "Cipher":
        """Build a cipher from the base64 key held in configuration"""
        if not encoded:
            raise CryptoFailure("Encryption key is not configured")
        try:
            key = base64.b64decode(encoded.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise CryptoFailure("Encryption key is not valid base64") from e
        return cls(key)

    @staticmethod
    def generate_new_key() -> str:
        """Return a fresh base64-encoded 256-bit key for re-encryption migrations"""
        return base64.b64encode(AESGCM.generate_key(bit_length=KEY_SIZE_BYTES * 8)).decode("ascii")

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        """
        Encrypt one field value.

        None and "" are returned unchanged: there is nothing to protect and
        storing ciphertext for emptiness would only leak its length.
        """
        if plaintext is None or plaintext == "":
            return plaintext
        nonce = os.urandom(NONCE_SIZE_BYTES)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, blob: Optional[str]) -> str:
        """
        Decrypt a blob produced by ``encrypt``.

        Raises:
            CryptoFailure: blob missing, not base64, too short, or tag
                verification failed (tampered data or wrong key)
        """
        if not blob:
            raise CryptoFailure("No ciphertext to decrypt")
        try:
            raw = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise CryptoFailure("Ciphertext is not valid base64") from e

        if len(raw) < NONCE_SIZE_BYTES + TAG_SIZE_BYTES:
            raise CryptoFailure("Ciphertext is shorter than nonce and tag")

        nonce, sealed = raw[:NONCE_SIZE_BYTES], raw[NONCE_SIZE_BYTES:]
        try:
            plaintext = self._aead.decrypt(nonce, sealed, None)
        except InvalidTag as e:
            raise CryptoFailure("Ciphertext failed authentication") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CryptoFailure("Decrypted field is not valid UTF-8") from e

    def fingerprint(self, value: Optional[str]) -> Optional[str]:
        """
        Deterministic keyed digest of a sensitive value.

        Ciphertext is randomized, so uniqueness of encrypted columns is
        enforced on this HMAC-SHA256 fingerprint instead.
        """
        if value is None or value == "":
            return None
        return hmac.new(self._fingerprint_key, value.encode("utf-8"), hashlib.sha256).hexdigest()
