"""
Password-based encryption of seed phrases.

SECURITY NOTICE:
This module handles plaintext seed phrases. Plaintext is only held for the
duration of a single encrypt or decrypt call and is never logged.
"""

import os
import base64
import binascii
import logging
import struct
from typing import Tuple

from argon2 import Type
from argon2.exceptions import Argon2Error
from argon2.low_level import hash_secret_raw
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.backends import default_backend
from cryptography.exceptions import InvalidTag

from . import config
from .errors import EncryptionError, DecryptionError

logger = logging.getLogger(__name__)


class SeedCipher:
    """
    Encrypts and decrypts seed phrases with a per-item passphrase.

    Ciphertexts are base64 strings wrapping a small envelope:

        MAGIC | version | time_cost | memory_cost | parallelism |
        salt_len | nonce_len | tag_len | salt | nonce | tag | ciphertext

    The header is authenticated as associated data, and the Argon2id cost
    parameters travel with the ciphertext so a vault written with one set of
    costs can be read by an instance configured with another.

    Ciphertexts written by earlier releases (OpenSSL ``Salted__`` format,
    AES-256-CBC keyed with EVP_BytesToKey/MD5) can still be decrypted. That
    format carries no integrity tag; a wrong passphrase is only detected when
    the padding or the UTF-8 decoding of the result fails.
    """

    HEADER_FORMAT = '<BIIIBBB'
    TAG_SIZE = 16

    # Upper bounds for parameters read from untrusted ciphertexts
    MAX_TIME_COST = 16
    MAX_MEMORY_COST = 1048576  # 1 GiB
    MAX_PARALLELISM = 16

    def __init__(self,
                 time_cost: int = config.ARGON2_TIME_COST,
                 memory_cost: int = config.ARGON2_MEMORY_COST,
                 parallelism: int = config.ARGON2_PARALLELISM):
        self.backend = default_backend()
        self.time_cost = time_cost
        self.memory_cost = memory_cost
        self.parallelism = parallelism

    def generate_salt(self) -> bytes:
        """Generate a cryptographically secure random salt."""
        return os.urandom(config.SALT_SIZE)

    def derive_key(self, passphrase: str, salt: bytes,
                   time_cost: int, memory_cost: int, parallelism: int) -> bytes:
        """
        Derive an AES-256 key from a passphrase using Argon2id.

        Args:
            passphrase: The per-seed password
            salt: Random salt stored in the ciphertext envelope
            time_cost: Argon2 iterations
            memory_cost: Argon2 memory in KiB
            parallelism: Argon2 lanes

        Returns:
            32-byte encryption key
        """
        return hash_secret_raw(
            secret=passphrase.encode('utf-8'),
            salt=salt,
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=config.KEY_SIZE,
            type=Type.ID
        )

    def encrypt(self, plaintext: str, passphrase: str) -> str:
        """
        Encrypt a seed phrase.

        Two calls with the same inputs yield different ciphertexts, since the
        salt and the nonce are random.

        Raises:
            EncryptionError: If key derivation or encryption fails
        """
        if not isinstance(plaintext, str) or not isinstance(passphrase, str):
            raise EncryptionError("Seed and password must be text")

        salt = self.generate_salt()
        nonce = os.urandom(config.NONCE_SIZE)
        header = config.CIPHERTEXT_MAGIC + struct.pack(
            self.HEADER_FORMAT,
            config.CIPHERTEXT_VERSION,
            self.time_cost,
            self.memory_cost,
            self.parallelism,
            len(salt),
            len(nonce),
            self.TAG_SIZE,
        )

        key = None
        try:
            key = bytearray(self.derive_key(passphrase, salt, self.time_cost,
                                            self.memory_cost, self.parallelism))
            encryptor = Cipher(
                algorithms.AES(bytes(key)),
                modes.GCM(nonce),
                backend=self.backend
            ).encryptor()
            encryptor.authenticate_additional_data(header)
            ciphertext = encryptor.update(plaintext.encode('utf-8')) + encryptor.finalize()
        except (Argon2Error, ValueError) as e:
            logger.error(f"Encryption failed: {e}")
            raise EncryptionError(f"Could not encrypt seed: {e}") from e
        finally:
            if key is not None:
                self.clear_bytes(key)

        blob = header + salt + nonce + encryptor.tag + ciphertext
        return base64.b64encode(blob).decode('ascii')

    def decrypt(self, ciphertext: str, passphrase: str) -> str:
        """
        Decrypt a seed phrase.

        Raises:
            DecryptionError: If the passphrase is wrong or the ciphertext is
                malformed or truncated
        """
        if not isinstance(ciphertext, str) or not ciphertext:
            raise DecryptionError("Ciphertext is empty")

        try:
            raw = base64.b64decode(ciphertext.encode('ascii'), validate=True)
        except (binascii.Error, UnicodeEncodeError) as e:
            raise DecryptionError("Ciphertext is not valid base64") from e

        if self.is_legacy(ciphertext):
            return self._decrypt_legacy(raw, passphrase)
        return self._decrypt_envelope(raw, passphrase)

    @staticmethod
    def is_legacy(ciphertext: str) -> bool:
        """Check whether a ciphertext uses the OpenSSL ``Salted__`` format."""
        return ciphertext.startswith(config.LEGACY_CIPHERTEXT_PREFIX)

    def _decrypt_envelope(self, raw: bytes, passphrase: str) -> str:
        magic_size = len(config.CIPHERTEXT_MAGIC)
        header_size = magic_size + struct.calcsize(self.HEADER_FORMAT)
        if len(raw) < header_size or raw[:magic_size] != config.CIPHERTEXT_MAGIC:
            raise DecryptionError("Unrecognized ciphertext format")

        header = raw[:header_size]
        (version, time_cost, memory_cost, parallelism,
         salt_len, nonce_len, tag_len) = struct.unpack(self.HEADER_FORMAT, raw[magic_size:header_size])
        if version != config.CIPHERTEXT_VERSION:
            raise DecryptionError(f"Unsupported ciphertext version {version}")
        self._check_kdf_params(time_cost, memory_cost, parallelism)

        salt, nonce, tag, body = self._split(raw[header_size:], salt_len, nonce_len, tag_len)

        key = None
        try:
            key = bytearray(self.derive_key(passphrase, salt, time_cost, memory_cost, parallelism))
            decryptor = Cipher(
                algorithms.AES(bytes(key)),
                modes.GCM(nonce, tag),
                backend=self.backend
            ).decryptor()
            decryptor.authenticate_additional_data(header)
            plaintext = decryptor.update(body) + decryptor.finalize()
        except InvalidTag as e:
            raise DecryptionError("Wrong password or corrupted seed") from e
        except (Argon2Error, ValueError) as e:
            raise DecryptionError(f"Could not decrypt seed: {e}") from e
        finally:
            if key is not None:
                self.clear_bytes(key)

        try:
            return plaintext.decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted seed is not valid text") from e

    def _check_kdf_params(self, time_cost: int, memory_cost: int, parallelism: int) -> None:
        if not 1 <= time_cost <= self.MAX_TIME_COST:
            raise DecryptionError(f"Ciphertext time cost {time_cost} out of range")
        if not 1 <= parallelism <= self.MAX_PARALLELISM:
            raise DecryptionError(f"Ciphertext parallelism {parallelism} out of range")
        if not 8 * parallelism <= memory_cost <= self.MAX_MEMORY_COST:
            raise DecryptionError(f"Ciphertext memory cost {memory_cost} out of range")

    @staticmethod
    def _split(data: bytes, salt_len: int, nonce_len: int, tag_len: int) -> Tuple[bytes, bytes, bytes, bytes]:
        if nonce_len == 0 or tag_len != SeedCipher.TAG_SIZE or len(data) < salt_len + nonce_len + tag_len:
            raise DecryptionError("Ciphertext is truncated")
        salt = data[:salt_len]
        nonce = data[salt_len:salt_len + nonce_len]
        tag = data[salt_len + nonce_len:salt_len + nonce_len + tag_len]
        return salt, nonce, tag, data[salt_len + nonce_len + tag_len:]

    def _decrypt_legacy(self, raw: bytes, passphrase: str) -> str:
        if len(raw) < 16 or raw[:8] != b'Salted__':
            raise DecryptionError("Unrecognized ciphertext format")
        salt, body = raw[8:16], raw[16:]
        if not body or len(body) % 16:
            raise DecryptionError("Ciphertext is truncated")

        key, iv = self._evp_bytes_to_key(passphrase.encode('utf-8'), salt)
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv), backend=self.backend).decryptor()
        padded = decryptor.update(body) + decryptor.finalize()

        unpadder = padding.PKCS7(128).unpadder()
        try:
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode('utf-8')
        except (ValueError, UnicodeDecodeError) as e:
            # No integrity tag in this format, padding is the only signal
            raise DecryptionError("Wrong password or corrupted seed") from e

    def _evp_bytes_to_key(self, password: bytes, salt: bytes) -> Tuple[bytes, bytes]:
        """OpenSSL EVP_BytesToKey with MD5 and a single iteration."""
        derived = b''
        block = b''
        while len(derived) < config.KEY_SIZE + 16:
            digest = hashes.Hash(hashes.MD5(), backend=self.backend)
            digest.update(block + password + salt)
            block = digest.finalize()
            derived += block
        return derived[:config.KEY_SIZE], derived[config.KEY_SIZE:config.KEY_SIZE + 16]

    def clear_bytes(self, data: bytearray) -> None:
        """Attempt to clear sensitive bytes from memory."""
        if isinstance(data, bytearray):
            for i in range(len(data)):
                data[i] = 0
