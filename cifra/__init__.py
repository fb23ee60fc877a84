"""
Cifra: RSA block encryption for texts and streamed files.

High-level API:
- load_key(pem, role) -> KeyHandle
- generate_key_pair(modulus_bits=4096) -> KeyPair
- encrypt_text(key, text) / decrypt_text(key, data)
- encrypt_file(src, dst, public_key) / decrypt_file(src, dst, private_key)
- CryptService(settings) for result-normalized access from front ends
"""

from cifra.algo import (
    BlockCorrupt,
    BlockSize,
    BlockTooLarge,
    CifraError,
    DecryptionFailure,
    Direction,
    InvalidBase64,
    InvalidKeyFormat,
    IOFailure,
    KeyGenFailure,
    KeyHandle,
    KeyPair,
    PayloadTooLarge,
    TruncatedInput,
    decrypt_text,
    encrypt_text,
    generate_key_pair,
    generate_secret_key,
    load_key,
    load_key_file,
    normalize_pem,
    symmetric_decrypt,
    symmetric_encrypt,
    transform_block,
)
from cifra.pipeline import (
    PipelineState,
    StreamJob,
    StreamSummary,
    decrypt_file,
    encrypt_file,
    run_stream,
)
from cifra.results import Error, Ok, Result, capture
from cifra.service import BatchItem, BatchReport, CryptService
from cifra.settings import Settings

__all__ = [
    "BatchItem",
    "BatchReport",
    "BlockCorrupt",
    "BlockSize",
    "BlockTooLarge",
    "CifraError",
    "CryptService",
    "DecryptionFailure",
    "Direction",
    "Error",
    "InvalidBase64",
    "InvalidKeyFormat",
    "IOFailure",
    "KeyGenFailure",
    "KeyHandle",
    "KeyPair",
    "Ok",
    "PayloadTooLarge",
    "PipelineState",
    "Result",
    "Settings",
    "StreamJob",
    "StreamSummary",
    "TruncatedInput",
    "capture",
    "decrypt_file",
    "decrypt_text",
    "encrypt_file",
    "encrypt_text",
    "generate_key_pair",
    "generate_secret_key",
    "load_key",
    "load_key_file",
    "normalize_pem",
    "run_stream",
    "symmetric_decrypt",
    "symmetric_encrypt",
    "transform_block",
]
