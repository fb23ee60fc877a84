"""
Cifra Web — Utility Helpers
===========================

Display helpers shared by the tabs: byte counts, block-size hints and
rendering of :class:`cifra.results.Error` values.
"""

from __future__ import annotations

import math

import streamlit as st

from cifra.algo import BlockSize
from cifra.results import Error

_ERROR_TITLES = {
    "InvalidKeyFormat": "Invalid key",
    "KeyGenFailure": "Key generation failed",
    "BlockTooLarge": "Block too large",
    "PayloadTooLarge": "Text too long for one RSA block",
    "DecryptionFailure": "Decryption failed",
    "TruncatedInput": "Ciphertext is truncated",
    "InvalidBase64": "Input is not valid Base64",
    "IOFailure": "File error",
}


def human_file_size(size_bytes: float) -> str:
    """Convert byte count to a human-readable string (e.g. '1.5 MB')."""
    if size_bytes < 0:
        return "0 B"
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(size_bytes) < 1024.0:
            if unit == "B":
                return f"{int(size_bytes)} {unit}"
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} PB"


def block_hint(key_size: int, size_bytes: int, encrypting: bool) -> str:
    """Describe how many RSA blocks a file of *size_bytes* turns into."""
    sizes = BlockSize.for_modulus(key_size)
    if encrypting:
        blocks = math.ceil(size_bytes / sizes.plain)
        return (
            f"{blocks} block(s) of {sizes.plain} bytes → "
            f"{human_file_size(blocks * sizes.cipher)} ciphertext"
        )
    if size_bytes % sizes.cipher:
        return f"⚠ size is not a multiple of {sizes.cipher} bytes for a {key_size}-bit key"
    return f"{size_bytes // sizes.cipher} block(s) of {sizes.cipher} bytes"


def show_error(error: Error) -> None:
    """Render an error result."""
    title = _ERROR_TITLES.get(error.kind, "Error")
    st.error(f"{title}: {error.message}")
