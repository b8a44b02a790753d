"""Print a fresh base64-encoded AES-256 key for ENCRYPTION_KEY

Used when provisioning a new environment or preparing a key rotation.
"""

from consumer_finance.infrastructure.crypto.cipher import Cipher


def main() -> None:
    print(Cipher.generate_new_key())


if __name__ == "__main__":
    main()
