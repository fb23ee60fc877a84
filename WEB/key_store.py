"""
Cifra Web — Session-State Key Store
===================================

RSA keys live entirely in ``st.session_state``; nothing is persisted to
disk.  Every mutating helper returns a :class:`cifra.results.Result` so the
tabs can render success or failure without catching exceptions.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import streamlit as st

from cifra import algo
from cifra.algo import Direction
from cifra.results import Ok, Result, capture
from cifra.service import CryptService


@dataclass
class RSAKeyEntry:
    """An RSA key (public, private or both) stored in the session."""
    key_id: str
    name: str
    public_pem: str   # "" when only the private key was imported
    private_pem: str  # "" when only the public key was imported
    key_size: int
    created: str


_RSA_KEY = "cifra_rsa_keys"


def _init_state() -> None:
    if _RSA_KEY not in st.session_state:
        st.session_state[_RSA_KEY] = {}


def _store(name: str, public_pem: str, private_pem: str, key_size: int) -> RSAKeyEntry:
    _init_state()
    entry = RSAKeyEntry(
        key_id=uuid.uuid4().hex[:12],
        name=name.strip() or "Untitled RSA Key",
        public_pem=public_pem,
        private_pem=private_pem,
        key_size=key_size,
        created=datetime.now(timezone.utc).isoformat(),
    )
    st.session_state[_RSA_KEY][entry.key_id] = entry
    return entry


# ---------------------------------------------------------------------------
# RSA key operations
# ---------------------------------------------------------------------------

def generate_rsa_keypair(service: CryptService, name: str, key_size: int) -> Result:
    """Generate an RSA key pair through the service and store it."""
    result = service.generate_key_pair(key_size)
    if not result.ok:
        return result
    pair = result.payload
    return Ok(_store(name, pair.public_pem, pair.private_pem, key_size))


def import_rsa_key(name: str, public_pem: str = "", private_pem: str = "") -> Result:
    """Import a public key, a private key, or both (escaped PEMs accepted)."""

    def _run() -> RSAKeyEntry:
        public_text = ""
        private_text = ""
        key_size = 0
        if public_pem.strip():
            pub = algo.load_key(public_pem, Direction.ENCRYPT)
            public_text = algo.normalize_pem(public_pem).decode("ascii")
            key_size = pub.modulus_bits
        if private_pem.strip():
            priv = algo.load_key(private_pem, Direction.DECRYPT)
            private_text = algo.normalize_pem(private_pem).decode("ascii")
            key_size = priv.modulus_bits
        if not key_size:
            raise algo.InvalidKeyFormat("Paste a public key, a private key, or both.")
        return _store(name, public_text, private_text, key_size)

    return capture(_run)


def list_rsa_keys() -> list[RSAKeyEntry]:
    """Return all RSA keys in the session (newest first)."""
    _init_state()
    keys = list(st.session_state[_RSA_KEY].values())
    keys.sort(key=lambda k: k.created, reverse=True)
    return keys


def get_rsa_key(key_id: str) -> Optional[RSAKeyEntry]:
    _init_state()
    return st.session_state[_RSA_KEY].get(key_id)


def delete_rsa_key(key_id: str) -> bool:
    _init_state()
    return st.session_state[_RSA_KEY].pop(key_id, None) is not None


def rename_rsa_key(key_id: str, new_name: str) -> bool:
    _init_state()
    entry = st.session_state[_RSA_KEY].get(key_id)
    if entry is None:
        return False
    entry.name = new_name.strip() or entry.name
    return True
