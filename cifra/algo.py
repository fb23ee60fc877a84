"""
Cifra Block Engine
==================

RSA PKCS#1 v1.5 block encryption with:
- Role-tagged PEM key loading with escape/newline normalization
- Block sizing derived from the RSA modulus
- Single-block text encryption with Base64 framing
- OpenSSL/CryptoJS-compatible passphrase AES for short texts
- RSA key pair and AES/HMAC secret generation

Uses the ``cryptography`` library exclusively.

Block sizes
-----------
::

    modulus bytes  = modulus_bits // 8
    plain  block   = modulus bytes - 11   (PKCS#1 v1.5 overhead)
    cipher block   = modulus bytes

    2048-bit key  -> 245 / 256
    4096-bit key  -> 501 / 512

Encryption reads ``plain``-sized chunks and decryption reads
``cipher``-sized chunks; the two read sizes are never interchangeable.

Symmetric text format
---------------------
::

    base64( b"Salted__" || salt(8) || AES-256-CBC(PKCS7(plaintext)) )

Key and IV come from EVP_BytesToKey (MD5, one round), which is what
``openssl enc -aes-256-cbc -md md5`` and CryptoJS ``AES.encrypt`` produce.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import os
from dataclasses import dataclass
from functools import cached_property
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import padding as sym_padding
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import (
    RSAPrivateKey,
    RSAPublicKey,
)
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PKCS1_OVERHEAD: int = 11          # PKCS#1 v1.5 encryption padding bytes
PKCS1_MIN_PADDING: int = 8        # minimum non-zero padding string length
RSA_PUBLIC_EXPONENT: int = 65537
DEFAULT_MODULUS_BITS: int = 4096

AES_KEY_LENGTHS: Tuple[int, ...] = (128, 192, 256)
HMAC_MIN_BITS: int = 8
HMAC_MAX_BITS: int = 2**31 - 1

SALT_MAGIC: bytes = b"Salted__"   # OpenSSL salted-format marker
SALT_SIZE: int = 8
AES_BLOCK: int = 16
SYM_KEY_SIZE: int = 32            # AES-256
SYM_IV_SIZE: int = 16

PemInput = Union[str, bytes]

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class CifraError(Exception):
    """
    Base exception for all Cifra errors.

    ``kind`` is the stable name front ends switch on; ``block_index`` is set
    when the failure is tied to one block of a stream.
    """

    kind: str = "CifraError"

    def __init__(self, message: str, *, block_index: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.block_index = block_index

    def __str__(self) -> str:
        if self.block_index is None:
            return self.message
        return f"{self.message} (block {self.block_index})"


class InvalidKeyFormat(CifraError):
    """PEM is malformed, of the wrong key type, or not RSA."""

    kind = "InvalidKeyFormat"


class KeyGenFailure(CifraError):
    """Key or secret generation failed."""

    kind = "KeyGenFailure"


class BlockTooLarge(CifraError):
    """A plaintext block exceeds the plain block size of the key."""

    kind = "BlockTooLarge"


class PayloadTooLarge(CifraError):
    """A text payload does not fit into a single plaintext block."""

    kind = "PayloadTooLarge"


class DecryptionFailure(CifraError):
    """Wrong key, bad padding, or corrupted ciphertext."""

    kind = "DecryptionFailure"


class BlockCorrupt(DecryptionFailure):
    """Ciphertext block has the wrong length for the key."""


class TruncatedInput(CifraError):
    """Ciphertext length is not a multiple of the cipher block size."""

    kind = "TruncatedInput"


class InvalidBase64(CifraError):
    """Input text is not valid Base64."""

    kind = "InvalidBase64"


class IOFailure(CifraError):
    """Reading the source or writing the destination failed."""

    kind = "IOFailure"


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


class Direction(str, Enum):
    """Transform direction, also used as the role a key is loaded for."""

    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


@dataclass(frozen=True)
class BlockSize:
    """Plain and cipher block sizes for one RSA modulus."""

    plain: int
    cipher: int

    @classmethod
    def for_modulus(cls, modulus_bits: int) -> "BlockSize":
        cipher = modulus_bits // 8
        plain = cipher - PKCS1_OVERHEAD
        if plain <= 0:
            raise InvalidKeyFormat(f"RSA modulus of {modulus_bits} bits is too small.")
        return cls(plain=plain, cipher=cipher)

    def read_size(self, direction: Direction) -> int:
        """Chunk size a stream must be read in for *direction*."""
        return self.plain if direction is Direction.ENCRYPT else self.cipher


@dataclass(frozen=True)
class KeyHandle:
    """
    A validated RSA key tagged with the role it was loaded for.

    ``Direction.ENCRYPT`` handles wrap a public key, ``Direction.DECRYPT``
    handles wrap a private key.
    """

    key: Union[RSAPublicKey, RSAPrivateKey]
    role: Direction

    def __post_init__(self) -> None:
        expected = RSAPublicKey if self.role is Direction.ENCRYPT else RSAPrivateKey
        if not isinstance(self.key, expected):
            raise InvalidKeyFormat(
                f"A {self.role.value} key must be an RSA "
                f"{'public' if self.role is Direction.ENCRYPT else 'private'} key."
            )

    @property
    def modulus_bits(self) -> int:
        return self.key.key_size

    @property
    def block_size(self) -> BlockSize:
        return BlockSize.for_modulus(self.key.key_size)

    @cached_property
    def private_numbers(self) -> rsa.RSAPrivateNumbers:
        """CRT parameters of a ``DECRYPT`` key, extracted once."""
        return self.key.private_numbers()


@dataclass(frozen=True)
class KeyPair:
    """PEM-encoded RSA key pair with embedded newlines."""

    public_pem: str
    private_pem: str


# ---------------------------------------------------------------------------
# PEM normalization
# ---------------------------------------------------------------------------


def normalize_pem(pem: PemInput) -> bytes:
    """
    Repair the transport artifacts PEM text picks up in forms and JSON.

    Literal ``\\n`` / ``\\r\\n`` escape sequences become real newlines,
    surrounding whitespace is dropped and the result ends in exactly one
    newline.
    """
    if isinstance(pem, (bytes, bytearray)):
        try:
            text = bytes(pem).decode("ascii")
        except UnicodeDecodeError as exc:
            raise InvalidKeyFormat("PEM must be ASCII text.") from exc
    elif isinstance(pem, str):
        text = pem
    else:
        raise InvalidKeyFormat("PEM must be str or bytes.")

    text = text.replace("\\r\\n", "\n").replace("\\n", "\n").replace("\r\n", "\n")
    text = text.strip()
    if not text:
        raise InvalidKeyFormat("PEM is empty.")
    return (text + "\n").encode("ascii")


# ---------------------------------------------------------------------------
# BlockEngine
# ---------------------------------------------------------------------------


class BlockEngine:
    """
    Key material, block codec and text codec.

    All public methods are **static**; the class is a namespace the stream
    pipeline and the service build on.
    """

    # ------------------------------------------------------------------
    # Key material
    # ------------------------------------------------------------------

    @staticmethod
    def load_key(
        pem: PemInput,
        role: Direction,
        passphrase: Optional[str] = None,
    ) -> KeyHandle:
        """
        Parse *pem* as the key type *role* needs.

        Parameters
        ----------
        pem : str or bytes
            PEM text, possibly with trailing newlines or escaped ``\\n``.
        role : Direction
            ``ENCRYPT`` expects a public key, ``DECRYPT`` a private key.
        passphrase : str, optional
            Password for an encrypted private key.

        Raises
        ------
        InvalidKeyFormat
            If the PEM cannot be parsed as the expected RSA key.
        """
        role = Direction(role)
        data = normalize_pem(pem)
        try:
            if role is Direction.ENCRYPT:
                key = serialization.load_pem_public_key(data)
            else:
                pwd = passphrase.encode("utf-8") if passphrase else None
                key = serialization.load_pem_private_key(data, password=pwd)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            kind = "public" if role is Direction.ENCRYPT else "private"
            raise InvalidKeyFormat(f"PEM could not be parsed as an RSA {kind} key.") from exc
        return KeyHandle(key=key, role=role)

    @staticmethod
    def load_key_file(
        path: Union[str, Path],
        role: Direction,
        passphrase: Optional[str] = None,
    ) -> KeyHandle:
        """Load a role-tagged key from a PEM file on disk."""
        path = Path(path)
        try:
            text = path.read_text(encoding="ascii")
        except FileNotFoundError as exc:
            raise InvalidKeyFormat(f"No key file found at {path}.") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise IOFailure(f"Could not read key file {path}: {exc}") from exc
        if not text.strip():
            raise InvalidKeyFormat(f"Key file {path} is empty.")
        return BlockEngine.load_key(text, role, passphrase=passphrase)

    @staticmethod
    def generate_key_pair(modulus_bits: int = DEFAULT_MODULUS_BITS) -> KeyPair:
        """Generate an RSA key pair (SPKI public, PKCS#8 private)."""
        try:
            private_key = rsa.generate_private_key(
                public_exponent=RSA_PUBLIC_EXPONENT,
                key_size=modulus_bits,
            )
            public_pem = private_key.public_key().public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
            private_pem = private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
        except Exception as exc:
            raise KeyGenFailure(f"RSA key generation failed: {exc}") from exc
        log.info("generated %d-bit RSA key pair", modulus_bits)
        return KeyPair(
            public_pem=public_pem.decode("ascii"),
            private_pem=private_pem.decode("ascii"),
        )

    @staticmethod
    def generate_secret_key(kind: str = "aes", length_bits: int = 128) -> str:
        """
        Generate a random AES or HMAC secret, hex encoded.

        ``aes`` accepts 128, 192 or 256 bits.  ``hmac`` accepts 8 to
        2**31 - 1 bits; lengths that are not a multiple of 8 are truncated
        to whole bytes.
        """
        kind = kind.lower()
        if kind == "aes":
            if length_bits not in AES_KEY_LENGTHS:
                raise KeyGenFailure(
                    f"AES key length must be one of {AES_KEY_LENGTHS}, got {length_bits}."
                )
        elif kind == "hmac":
            if not HMAC_MIN_BITS <= length_bits <= HMAC_MAX_BITS:
                raise KeyGenFailure(
                    f"HMAC key length must be between {HMAC_MIN_BITS} and "
                    f"{HMAC_MAX_BITS} bits, got {length_bits}."
                )
        else:
            raise KeyGenFailure(f"Unknown secret key type {kind!r}.")
        return os.urandom(length_bits // 8).hex()

    # ------------------------------------------------------------------
    # Block codec
    # ------------------------------------------------------------------

    @staticmethod
    def transform_block(key: KeyHandle, block: bytes, direction: Direction) -> bytes:
        """
        Encrypt or decrypt one block with PKCS#1 v1.5 padding.

        Raises
        ------
        InvalidKeyFormat
            If the key was loaded for the other direction.
        BlockTooLarge
            If a plaintext block is larger than ``block_size.plain``.
        BlockCorrupt
            If a ciphertext block is not exactly ``block_size.cipher`` bytes.
        DecryptionFailure
            If the padding or modulus check fails.
        """
        direction = Direction(direction)
        _check_role(key, direction)
        sizes = key.block_size

        if direction is Direction.ENCRYPT:
            if len(block) > sizes.plain:
                raise BlockTooLarge(
                    f"Block of {len(block)} bytes exceeds the {sizes.plain}-byte "
                    f"limit of a {key.modulus_bits}-bit key."
                )
            try:
                return key.key.encrypt(bytes(block), asym_padding.PKCS1v15())
            except ValueError as exc:
                raise BlockTooLarge(f"RSA encryption rejected the block: {exc}") from exc

        if len(block) != sizes.cipher:
            raise BlockCorrupt(
                f"Ciphertext block is {len(block)} bytes, expected {sizes.cipher}."
            )
        return _strip_pkcs1_padding(_rsa_private_op(key, bytes(block)))

    # ------------------------------------------------------------------
    # Text codec (single block)
    # ------------------------------------------------------------------

    @staticmethod
    def encrypt_text(key: KeyHandle, text: str) -> str:
        """Encrypt a UTF-8 string into one Base64-encoded ciphertext block."""
        _check_role(key, Direction.ENCRYPT)
        data = text.encode("utf-8")
        limit = key.block_size.plain
        if len(data) > limit:
            raise PayloadTooLarge(
                f"Text is {len(data)} bytes; a {key.modulus_bits}-bit key "
                f"encrypts at most {limit} bytes."
            )
        ct = BlockEngine.transform_block(key, data, Direction.ENCRYPT)
        return base64.b64encode(ct).decode("ascii")

    @staticmethod
    def decrypt_text(key: KeyHandle, data: PemInput) -> str:
        """Decrypt a Base64 ciphertext block produced by :meth:`encrypt_text`."""
        _check_role(key, Direction.DECRYPT)
        ct = _b64decode(data)
        pt = BlockEngine.transform_block(key, ct, Direction.DECRYPT)
        try:
            return pt.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionFailure("Decrypted data is not valid UTF-8 text.") from exc

    # ------------------------------------------------------------------
    # Passphrase AES (OpenSSL salted format)
    # ------------------------------------------------------------------

    @staticmethod
    def symmetric_encrypt(text: str, passphrase: str) -> str:
        """
        Encrypt *text* with a passphrase in the OpenSSL ``Salted__`` format.

        Output is readable by CryptoJS ``AES.decrypt`` and by
        ``openssl enc -d -aes-256-cbc -md md5 -a``.
        """
        _validate_passphrase(passphrase)
        salt = os.urandom(SALT_SIZE)
        key, iv = _evp_bytes_to_key(passphrase.encode("utf-8"), salt)
        padder = sym_padding.PKCS7(AES_BLOCK * 8).padder()
        padded = padder.update(text.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        ct = encryptor.update(padded) + encryptor.finalize()
        return base64.b64encode(SALT_MAGIC + salt + ct).decode("ascii")

    @staticmethod
    def symmetric_decrypt(data: PemInput, passphrase: str) -> str:
        """Decrypt a blob produced by :meth:`symmetric_encrypt`."""
        _validate_passphrase(passphrase)
        raw = _b64decode(data)
        header = len(SALT_MAGIC) + SALT_SIZE
        if not raw.startswith(SALT_MAGIC) or len(raw) < header + AES_BLOCK:
            raise DecryptionFailure("Payload is not in the salted AES format.")
        ct = raw[header:]
        if len(ct) % AES_BLOCK:
            raise DecryptionFailure("AES ciphertext is not a whole number of blocks.")

        salt = raw[len(SALT_MAGIC) : header]
        key, iv = _evp_bytes_to_key(passphrase.encode("utf-8"), salt)
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ct) + decryptor.finalize()
        unpadder = sym_padding.PKCS7(AES_BLOCK * 8).unpadder()
        try:
            pt = unpadder.update(padded) + unpadder.finalize()
            return pt.decode("utf-8")
        except (ValueError, UnicodeDecodeError) as exc:
            raise DecryptionFailure("Wrong passphrase or corrupted data.") from exc


# ---------------------------------------------------------------------------
# Validation helpers (module-private)
# ---------------------------------------------------------------------------


def _check_role(key: KeyHandle, direction: Direction) -> None:
    if not isinstance(key, KeyHandle):
        raise InvalidKeyFormat("Key must be loaded with load_key() first.")
    if key.role is not direction:
        raise InvalidKeyFormat(
            f"Key was loaded for {key.role.value}, cannot {direction.value} with it."
        )


def _rsa_private_op(key: KeyHandle, block: bytes) -> bytes:
    """Raw RSA decryption (CRT) of one cipher block, left-padded to modulus size."""
    numbers = key.private_numbers
    c = int.from_bytes(block, "big")
    if c >= numbers.public_numbers.n:
        raise DecryptionFailure("Ciphertext block is not smaller than the modulus.")
    m1 = pow(c, numbers.dmp1, numbers.p)
    m2 = pow(c, numbers.dmq1, numbers.q)
    m = m2 + numbers.q * ((numbers.iqmp * (m1 - m2)) % numbers.p)
    return m.to_bytes(len(block), "big")


def _strip_pkcs1_padding(encoded: bytes) -> bytes:
    """
    Check ``00 02 PS 00 M`` with at least eight non-zero PS bytes and return M.

    OpenSSL's implicit rejection hands back random bytes for a bad padding,
    so the structure is verified here instead.
    """
    separator = encoded.find(b"\x00", 2)
    if encoded[:2] != b"\x00\x02" or separator < 2 + PKCS1_MIN_PADDING:
        raise DecryptionFailure("RSA decryption failed: wrong key or corrupted data.")
    return encoded[separator + 1:]


def _validate_passphrase(passphrase: str) -> None:
    if not isinstance(passphrase, str) or len(passphrase) == 0:
        raise InvalidKeyFormat("Passphrase must be a non-empty string.")


def _b64decode(data: PemInput) -> bytes:
    if isinstance(data, str):
        try:
            data = data.encode("ascii")
        except UnicodeEncodeError as exc:
            raise InvalidBase64("Input is not valid Base64.") from exc
    cleaned = b"".join(bytes(data).split())
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidBase64("Input is not valid Base64.") from exc


def _evp_bytes_to_key(passphrase: bytes, salt: bytes) -> Tuple[bytes, bytes]:
    """OpenSSL EVP_BytesToKey with MD5 and a single iteration."""
    derived = b""
    block = b""
    while len(derived) < SYM_KEY_SIZE + SYM_IV_SIZE:
        block = hashlib.md5(block + passphrase + salt).digest()
        derived += block
    return derived[:SYM_KEY_SIZE], derived[SYM_KEY_SIZE : SYM_KEY_SIZE + SYM_IV_SIZE]


# ---------------------------------------------------------------------------
# Module-level convenience functions
# ---------------------------------------------------------------------------

_engine = BlockEngine

load_key = _engine.load_key
load_key_file = _engine.load_key_file
generate_key_pair = _engine.generate_key_pair
generate_secret_key = _engine.generate_secret_key

transform_block = _engine.transform_block

encrypt_text = _engine.encrypt_text
decrypt_text = _engine.decrypt_text

symmetric_encrypt = _engine.symmetric_encrypt
symmetric_decrypt = _engine.symmetric_decrypt
