"""
Cifra — Web Edition
===================

Streamlit application entry point.

Launch:
    cd cifra
    streamlit run WEB/app.py
"""

from __future__ import annotations

import sys
from pathlib import Path

# -- Ensure project root is importable ------------------------------------
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

# -- Ensure WEB/ directory is importable ----------------------------------
_web_root = str(Path(__file__).resolve().parent)
if _web_root not in sys.path:
    sys.path.insert(0, _web_root)

import streamlit as st  # noqa: E402

from cifra.registry import OperationRegistry, build_registry  # noqa: E402
from cifra.service import CryptService  # noqa: E402
from cifra.settings import Settings, configure_logging  # noqa: E402

# ---------------------------------------------------------------------------
# Page config — must be the first Streamlit command
# ---------------------------------------------------------------------------

st.set_page_config(
    page_title="Cifra",
    page_icon="🔐",
    layout="wide",
    initial_sidebar_state="collapsed",
)

st.markdown(
    """
    <style>
    .stButton > button[kind="primary"] {
        background-color: #e94560;
        border-color: #e94560;
    }
    .stButton > button[kind="primary"]:hover {
        background-color: #d63a54;
        border-color: #d63a54;
    }
    .stTabs [data-baseweb="tab-panel"] {
        padding-top: 1rem;
    }
    .cifra-header {
        text-align: center;
        padding: 1rem 0 0.5rem 0;
    }
    .cifra-header h1 {
        font-size: 2.2rem;
        margin-bottom: 0.2rem;
    }
    .cifra-header p {
        color: #a0a0b8;
        font-size: 0.95rem;
    }
    </style>
    """,
    unsafe_allow_html=True,
)


# ---------------------------------------------------------------------------
# Services: built once per process and passed to every tab
# ---------------------------------------------------------------------------

@st.cache_resource
def _services() -> tuple[CryptService, OperationRegistry]:
    settings = Settings()
    configure_logging(settings)
    service = CryptService(settings)
    return service, build_registry(service)


service, registry = _services()

# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------

st.markdown(
    """
    <div class="cifra-header">
        <h1>🔐 Cifra</h1>
        <p>RSA block encryption for texts and files — Web Edition</p>
    </div>
    """,
    unsafe_allow_html=True,
)

with st.sidebar:
    st.markdown("### About")
    st.markdown(
        "**Cifra** encrypts texts and files with RSA PKCS#1 v1.5, one "
        "modulus-sized block at a time."
    )
    st.markdown("---")
    st.markdown("#### Security Notice")
    st.markdown(
        "• Keys exist **only** in your browser session.  \n"
        "• Encrypted files carry no integrity tag: blocks can be reordered "
        "or dropped without detection.  \n"
        "• Always back up your private keys securely."
    )
    st.markdown("---")
    default_key = service.settings.private_key_path
    st.caption(f"Default private key: {default_key or 'not configured'}")
    st.caption("Cifra v1.0 — Web Edition")

# ---------------------------------------------------------------------------
# Tabs
# ---------------------------------------------------------------------------

from tabs.text_tab import render as render_text  # noqa: E402
from tabs.file_tab import render as render_file  # noqa: E402
from tabs.key_tab import render as render_keys   # noqa: E402

tab_text, tab_file, tab_keys = st.tabs(["📝 Text", "📁 Files", "🔑 Keys"])

with tab_text:
    render_text(registry)

with tab_file:
    render_file(service)

with tab_keys:
    render_keys(service)
