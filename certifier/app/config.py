"""
Runtime configuration for the certification service.

Pydantic v2 settings management: strict validation, no secret leakage,
fast failure on invalid configuration. Values are parsed once at
startup and are immutable afterwards.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class CertifierSettings(BaseSettings):
    """
    Application settings parsed from the environment (CERTIFIER_*).
    """

    # ---------------------------------------------------------------------
    # Filesystem layout
    # ---------------------------------------------------------------------

    policy_dir: Annotated[
        Path,
        Field(
            default=Path("config"),
            description=(
                "Directory holding document_types.json, allowlist.json "
                "and denylist.json"
            ),
        ),
    ]

    work_dir: Annotated[
        Path,
        Field(
            default=Path("tmp"),
            description="Root of per-run working directories",
        ),
    ]

    review_store_dir: Annotated[
        Path,
        Field(
            default=Path("store"),
            description="Storage root for documents pending manual review",
        ),
    ]

    # ---------------------------------------------------------------------
    # Signing credentials
    # ---------------------------------------------------------------------

    signing_p12_path: Annotated[
        Optional[Path],
        Field(
            default=None,
            description="PKCS#12 bundle used for PDF and JSON signing",
        ),
    ]

    signing_p12_password: Annotated[
        Optional[SecretStr],
        Field(
            default=None,
            description="Sensitive credential, redacted from logs",
        ),
    ]

    public_certificate_url: Annotated[
        Optional[str],
        Field(
            default=None,
            description=(
                "URL at which the signing certificate is published. "
                "Used as the identity of every new signature."
            ),
        ),
    ]

    trust_root_cert_path: Annotated[
        Optional[Path],
        Field(
            default=None,
            description=(
                "PEM- or DER-encoded trust root. When set, signatures "
                "already present in the PDF must chain to it."
            ),
        ),
    ]

    # ---------------------------------------------------------------------
    # Inputs
    # ---------------------------------------------------------------------

    pdf_source_override: Annotated[
        Optional[str],
        Field(
            default=None,
            description=(
                "When set, replaces the caller-supplied PDF source "
                "reference for every run"
            ),
        ),
    ]

    # ---------------------------------------------------------------------
    # Operational boundaries
    # ---------------------------------------------------------------------

    collaborator_timeout_seconds: Annotated[
        float,
        Field(
            default=60.0,
            gt=0,
            description="Upper bound for each collaborator call",
        ),
    ]

    http_timeout_seconds: Annotated[
        float,
        Field(default=30.0, gt=0),
    ]

    max_pdf_size_mb: Annotated[
        int,
        Field(
            default=25,
            ge=1,
            description="Largest PDF rendering accepted for retrieval",
        ),
    ]

    # ---------------------------------------------------------------------
    # Signature metadata
    # ---------------------------------------------------------------------

    signature_reason: str = "Document certification"
    signature_location: Optional[str] = None

    # ---------------------------------------------------------------------
    # Logging
    # ---------------------------------------------------------------------

    log_level: str = "INFO"
    log_file: Optional[Path] = None

    model_config = SettingsConfigDict(
        env_prefix="CERTIFIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    # ---------------------------------------------------------------------
    # Validators
    # ---------------------------------------------------------------------

    @field_validator("signing_p12_path", "trust_root_cert_path")
    @classmethod
    def certificate_path_must_exist(
        cls, v: Optional[Path], info: ValidationInfo
    ) -> Optional[Path]:
        if v is None:
            return v
        if not v.exists():
            raise ValueError(
                f"Configured {info.field_name} does not exist: {v}"
            )
        if not v.is_file():
            raise ValueError(
                f"Configured {info.field_name} is not a file: {v}"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(
                f"Unsupported log_level '{v}'. "
                f"Allowed values: {sorted(_LOG_LEVELS)}"
            )
        return level

    # ---------------------------------------------------------------------
    # Derived values
    # ---------------------------------------------------------------------

    @property
    def max_pdf_size_bytes(self) -> int:
        return self.max_pdf_size_mb * 1024 * 1024

    @property
    def signing_password(self) -> Optional[str]:
        if self.signing_p12_password is None:
            return None
        return self.signing_p12_password.get_secret_value()

    @property
    def numeric_log_level(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)

    def require_signing_credentials(self) -> None:
        """
        Raises:
            ValueError: if the signing key or the public certificate URL
                is not configured.
        """
        if self.signing_p12_path is None:
            raise ValueError("CERTIFIER_SIGNING_P12_PATH is not configured.")
        if not self.public_certificate_url:
            raise ValueError(
                "CERTIFIER_PUBLIC_CERTIFICATE_URL is not configured."
            )


@lru_cache(maxsize=1)
def get_settings() -> CertifierSettings:
    """
    Settings provider.

    Parsed once per process.
    """
    return CertifierSettings()
