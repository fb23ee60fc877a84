"""
Cifra Web — Files Tab
=====================

Encrypt / decrypt one or more uploaded files block by block with an RSA key.

Uploads are written to a temporary directory and handed to
``CryptService.encrypt_files`` / ``decrypt_files``, which process them
concurrently and report one result per file.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

import streamlit as st

from cifra.service import CryptService
from key_store import get_rsa_key, list_rsa_keys
from utils import block_hint, human_file_size, show_error

_DEFAULT_KEY = "__default__"


def render(service: CryptService) -> None:
    """Render the Files encryption / decryption tab."""

    operation = st.radio(
        "Operation",
        ["Encrypt", "Decrypt"],
        horizontal=True,
        key="file_operation",
    )
    encrypting = operation == "Encrypt"

    uploads = st.file_uploader(
        "Choose files" if encrypting else "Choose encrypted files",
        accept_multiple_files=True,
        key="file_uploader",
    )

    # ---- Key selector ----
    options = {
        k.key_id: f"{k.name}  ({k.key_size}-bit)"
        for k in list_rsa_keys()
        if (k.public_pem if encrypting else k.private_pem)
    }
    if not encrypting and service.settings.private_key_path:
        options[_DEFAULT_KEY] = "Server default private key"

    selected: str | None = None
    if not options:
        needed = "public" if encrypting else "private"
        st.info(f"No RSA key with a {needed} part yet. Add one in the **Keys** tab.")
    else:
        selected = st.selectbox(
            "RSA Key",
            options.keys(),
            format_func=lambda kid: options[kid],
            key="file_rsa_key",
        )

    extension = ""
    if not encrypting:
        extension = st.text_input(
            "Output extension (optional)",
            placeholder="taken from the file name, else txt",
            key="file_extension",
        )

    entry = get_rsa_key(selected) if selected and selected != _DEFAULT_KEY else None
    for uploaded in uploads or []:
        hint = f"  —  {block_hint(entry.key_size, uploaded.size, encrypting)}" if entry else ""
        st.caption(f"**{uploaded.name}**  —  {human_file_size(uploaded.size)}{hint}")

    st.markdown("---")
    btn_label = "🔒 Encrypt Files" if encrypting else "🔓 Decrypt Files"
    if not st.button(btn_label, type="primary", use_container_width=True, key="file_action"):
        return
    if not uploads:
        st.error("Please upload at least one file.")
        return
    if selected is None:
        st.error("Please select an RSA key.")
        return

    with tempfile.TemporaryDirectory(prefix="cifra-") as workdir:
        sources = _save_uploads(uploads, Path(workdir))
        with st.spinner(f"Processing {len(sources)} file(s)…"):
            if encrypting:
                result = service.encrypt_files(entry.public_pem, sources)
            else:
                private_pem = entry.private_pem if entry else None
                result = service.decrypt_files(private_pem, sources, extension=extension or None)

        if not result.ok:
            show_error(result)
            return

        report = result.payload
        if report.all_ok:
            st.success(f"{len(report.items)} file(s) processed.")
        else:
            st.warning(f"{len(report.succeeded)} succeeded, {len(report.failed)} failed.")

        for n, item in enumerate(report.items):
            outcome = item.result
            if not outcome.ok:
                st.markdown(f"**{item.source.name}**")
                show_error(outcome)
                continue
            out_path = outcome.payload.destination
            st.download_button(
                f"📥 {out_path.name}  ({human_file_size(outcome.payload.bytes_written)})",
                data=out_path.read_bytes(),
                file_name=out_path.name,
                mime="application/octet-stream",
                key=f"file_download_{n}",
            )


def _save_uploads(uploads, workdir: Path) -> list[Path]:
    """Write uploaded files to *workdir*, one subdirectory each to keep names."""
    paths = []
    for n, uploaded in enumerate(uploads):
        folder = workdir / str(n)
        folder.mkdir()
        path = folder / Path(uploaded.name).name
        path.write_bytes(uploaded.getvalue())
        paths.append(path)
    return paths
