"""
Runtime configuration.

Values come from ``CIFRA_*`` environment variables or a ``.env`` file in the
working directory.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cifra.algo import DEFAULT_MODULUS_BITS


class Settings(BaseSettings):
    # Keys
    default_modulus_bits: int = Field(default=DEFAULT_MODULUS_BITS, ge=1024)
    private_key_path: Optional[Path] = None  # fallback key for decryption

    # Batches
    max_concurrent_jobs: int = Field(default=4, ge=1)

    # Output naming
    encrypted_suffix: str = ".enc"
    decrypted_suffix: str = "_decrypted"
    decrypted_extension: str = "txt"

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="CIFRA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def configure_logging(settings: Settings) -> None:
    """Set up root logging for the web app."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
