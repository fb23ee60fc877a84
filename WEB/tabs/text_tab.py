"""
Cifra Web — Text Tab
====================

Encrypt / decrypt short texts using:
  • RSA key (one PKCS#1 v1.5 block, Base64 output)
  • Passphrase (OpenSSL / CryptoJS salted AES)

Operations are looked up in the operation registry by
``(area, object, method)``.
"""

from __future__ import annotations

import streamlit as st

from cifra.algo import BlockSize
from cifra.registry import OperationRegistry
from key_store import get_rsa_key, list_rsa_keys
from utils import show_error


def render(registry: OperationRegistry) -> None:
    """Render the Text encryption / decryption tab."""

    operation = st.radio(
        "Operation",
        ["Encrypt", "Decrypt"],
        horizontal=True,
        key="text_operation",
    )
    key_mode = st.radio(
        "Key Mode",
        ["RSA Key", "Passphrase"],
        horizontal=True,
        key="text_key_mode",
    )
    encrypting = operation == "Encrypt"

    selected_rsa_id: str | None = None
    passphrase = ""

    if key_mode == "RSA Key":
        rsa_keys = [
            k for k in list_rsa_keys()
            if (k.public_pem if encrypting else k.private_pem)
        ]
        if not rsa_keys:
            needed = "public" if encrypting else "private"
            st.info(f"No RSA key with a {needed} part yet. Add one in the **Keys** tab.")
        else:
            options = {k.key_id: f"{k.name}  ({k.key_size}-bit)" for k in rsa_keys}
            selected_rsa_id = st.selectbox(
                "Select RSA Key",
                options.keys(),
                format_func=lambda kid: options[kid],
                key="text_rsa_key",
            )
    else:
        passphrase = st.text_input(
            "Passphrase",
            type="password",
            placeholder="Enter your passphrase…",
            key="text_passphrase",
        )

    st.markdown("---")

    input_text = st.text_area(
        "Plaintext" if encrypting else "Ciphertext (Base64)",
        height=200,
        placeholder="Enter text to encrypt…" if encrypting else "Paste Base64-encoded ciphertext…",
        key=f"text_input_{operation.lower()}",
    )

    if input_text:
        n_bytes = len(input_text.encode("utf-8"))
        caption = f"{len(input_text):,} chars  |  {n_bytes:,} bytes"
        entry = get_rsa_key(selected_rsa_id) if selected_rsa_id else None
        if encrypting and entry:
            limit = BlockSize.for_modulus(entry.key_size).plain
            caption += f"  |  limit {limit} bytes"
        st.caption(caption)

    btn_label = "🔒 Encrypt" if encrypting else "🔓 Decrypt"
    if not st.button(btn_label, type="primary", use_container_width=True, key="text_action"):
        return
    if not input_text:
        st.error("Please enter some text first.")
        return

    if key_mode == "RSA Key":
        entry = get_rsa_key(selected_rsa_id) if selected_rsa_id else None
        if entry is None:
            st.error("Please select an RSA key.")
            return
        if encrypting:
            result = registry.dispatch(
                "crypt", "text", "encrypt", public_pem=entry.public_pem, text=input_text
            )
        else:
            result = registry.dispatch(
                "crypt", "text", "decrypt", private_pem=entry.private_pem, data=input_text
            )
    else:
        if encrypting:
            result = registry.dispatch(
                "symmetric", "text", "encrypt", text=input_text, passphrase=passphrase
            )
        else:
            result = registry.dispatch(
                "symmetric", "text", "decrypt", data=input_text, passphrase=passphrase
            )

    if not result.ok:
        show_error(result)
        return

    st.success("Encryption successful!" if encrypting else "Decryption successful!")
    st.text_area(
        "Encrypted Output (Base64)" if encrypting else "Decrypted Output",
        value=result.payload,
        height=200,
        key="text_output_display",
    )
    st.download_button(
        "📥 Download",
        data=result.payload.encode("utf-8"),
        file_name="encrypted.txt" if encrypting else "decrypted.txt",
        mime="text/plain",
        key="text_download",
    )
