"""
Collaborator interfaces consumed by the authorization engine.

The engine depends only on these protocols. Concrete adapters live in
certifier.app.services and are wired by AuthorizationEngine.from_config;
tests substitute doubles.

Contract shared by every method:
- may block or take non-trivial time, hence async
- faults are raised as certifier.app.errors.GatewayError subclasses
  (or OSError for raw I/O), never swallowed
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from certifier.app.schemas.policy import DocumentTypePolicy, SignerLists


class PolicyStore(Protocol):
    async def resolve_policy(
        self, document_type: str
    ) -> Optional[DocumentTypePolicy]:
        """Return the policy for a document type, or None if unknown."""
        ...

    async def resolve_lists(self) -> SignerLists:
        """Return the global allow and deny lists."""
        ...


class ReviewStore(Protocol):
    async def store_for_manual_review(
        self,
        raw: bytes,
        metadata: Dict[str, Any],
        document_type: str,
        review_id: str,
        version: int,
    ) -> None:
        """Persist a document for manual handling. Write-once per review_id."""
        ...


class AttestationVerifier(Protocol):
    async def verify_extractor_signature(
        self, raw_json: str, work_dir: Path
    ) -> bool:
        ...

    async def verify_validator_signatures(
        self, raw_json: str, work_dir: Path
    ) -> List[bool]:
        """One entry per validator, in document order."""
        ...


class PdfRetriever(Protocol):
    async def fetch_pdf(self, source_ref: str, work_dir: Path) -> Path:
        """Materialize the PDF rendering locally and return its path."""
        ...


class PdfHasher(Protocol):
    async def hash_pdf_content(self, pdf_path: Path) -> str:
        ...


class PdfCertifier(Protocol):
    async def verify_signatures(self, pdf_path: Path) -> bool:
        """Verify signatures already embedded in the PDF."""
        ...

    async def sign_pdf(self, pdf_path: Path, signature_id: str) -> Path:
        """
        Apply a new certificate signature.

        The input file is left untouched; the signed copy's path is
        returned.
        """
        ...


class JsonSigner(Protocol):
    async def sign_json(
        self,
        raw_json: str,
        content_signable: bool,
        admissible_signers: Sequence[str],
    ) -> str:
        """Return the JSON record carrying the new signature."""
        ...
