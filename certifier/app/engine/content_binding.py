"""
Content binding between the PDF rendering and the JSON record.

The JSON declares a content hash of its PDF rendering. This module
recomputes the hash from the actual PDF bytes and compares the two.

This is the last point at which a substituted or forged rendering can
be detected: it must run strictly before any new signature is written
to the PDF.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict

from certifier.app.errors import ContentMismatch
from certifier.app.gateways.protocols import PdfHasher
from certifier.app.schemas.document import Document

_ALGORITHM_PREFIX = "sha-256:"


class ContentBindingResult(BaseModel):
    declared_hash: Optional[str]
    computed_hash: str

    model_config = ConfigDict(frozen=True)


def normalize_hash(value: str) -> str:
    """
    Lower-case hex form of a content hash.

    Accepts the algorithm-prefixed rendering ("SHA-256:<hex>") as well
    as bare hex.
    """
    normalized = value.strip().lower()
    if normalized.startswith(_ALGORITHM_PREFIX):
        normalized = normalized[len(_ALGORITHM_PREFIX):]
    return normalized


def hashes_match(declared: Optional[str], computed: str) -> bool:
    if not declared:
        return False
    return normalize_hash(declared) == normalize_hash(computed)


async def bind_content(
    document: Document,
    pdf_path: Path,
    hasher: PdfHasher,
) -> ContentBindingResult:
    """
    Recompute the PDF content hash and check it against the JSON.

    Raises:
        ContentMismatch: if the hashes differ or the JSON declares none.
        GatewayError: propagated from the hasher.
    """
    computed = await hasher.hash_pdf_content(pdf_path)
    declared = document.meta_data.pdf_hash

    if not hashes_match(declared, computed):
        raise ContentMismatch()

    return ContentBindingResult(
        declared_hash=declared,
        computed_hash=computed,
    )
