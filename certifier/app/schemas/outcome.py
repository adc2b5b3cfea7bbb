"""
AuthorizationOutcome schema.

Defines the terminal result of one authorization run. Exactly one of
three outcomes is produced:

- DEFERRED: the document was stored for manual review, nothing was signed
- REJECTED: a policy, verification or collaborator failure stopped the run
- SIGNED:   both the PDF and the JSON carry the new certification

Callers branch on `status` and `kind`, never on the reason text.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Enumerations (FROZEN CONTRACTS)
# ---------------------------------------------------------------------------

class OutcomeStatus(str, Enum):
    DEFERRED = "deferred"
    REJECTED = "rejected"
    SIGNED = "signed"


class RejectionKind(str, Enum):
    """
    Machine-checkable reason class of a REJECTED outcome.
    """

    POLICY_UNRESOLVED = "policy_unresolved"
    MALFORMED_DOCUMENT = "malformed_document"
    CHAIN_OF_CUSTODY_VIOLATION = "chain_of_custody_violation"
    SIGNER_DENIED = "signer_denied"
    NOTHING_TO_SIGN = "nothing_to_sign"
    INVALID_ATTESTATION = "invalid_attestation"
    CONTENT_MISMATCH = "content_mismatch"
    INVALID_EXISTING_PDF_SIGNATURE = "invalid_existing_pdf_signature"
    SIGNING_FAILURE = "signing_failure"
    STORAGE_FAILURE = "storage_failure"


class AuthorizationState(str, Enum):
    """
    Progression states of a run.

    Every checking state either advances or ends the run as REJECTED.
    DEFERRED, REJECTED and SIGNED are the only terminal states.
    """

    START = "start"
    POLICY_RESOLVED = "policy_resolved"
    DEFERRED = "deferred"
    CHAIN_CHECKED = "chain_checked"
    SIGNERS_FILTERED = "signers_filtered"
    EXTRACTOR_VERIFIED = "extractor_verified"
    VALIDATORS_VERIFIED = "validators_verified"
    CONTENT_BOUND = "content_bound"
    PDF_VERIFIED = "pdf_verified"
    SIGNED = "signed"
    REJECTED = "rejected"


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------

class AuthorizationOutcome(BaseModel):
    """
    Immutable terminal result of one authorization run.
    """

    run_id: str = Field(..., description="Identifier of the run")
    status: OutcomeStatus

    document_type: Optional[str] = None

    # REJECTED only
    kind: Optional[RejectionKind] = None
    reason: Optional[str] = None

    # DEFERRED only
    review_id: Optional[str] = None

    # SIGNED only
    signed_json: Optional[str] = None
    signed_pdf_path: Optional[Path] = None
    signature_id: Optional[str] = None
    admissible_signers: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def enforce_outcome_invariants(self):
        """
        Each status carries exactly its own payload:

        - REJECTED: kind and reason present, no artifacts
        - DEFERRED: review_id present, no artifacts, no kind
        - SIGNED:   signed_json, signed_pdf_path and signature_id present
        """
        has_artifacts = any(
            v is not None
            for v in (self.signed_json, self.signed_pdf_path, self.signature_id)
        )

        if self.status == OutcomeStatus.REJECTED:
            if self.kind is None or not self.reason:
                raise ValueError("A rejected outcome requires kind and reason")
            if has_artifacts or self.review_id is not None:
                raise ValueError("A rejected outcome must not carry artifacts")

        elif self.status == OutcomeStatus.DEFERRED:
            if self.review_id is None:
                raise ValueError("A deferred outcome requires a review_id")
            if has_artifacts or self.kind is not None:
                raise ValueError("A deferred outcome must not carry artifacts")

        else:
            if (
                self.signed_json is None
                or self.signed_pdf_path is None
                or self.signature_id is None
            ):
                raise ValueError(
                    "A signed outcome requires signed_json, signed_pdf_path "
                    "and signature_id"
                )
            if self.kind is not None or self.review_id is not None:
                raise ValueError("A signed outcome must not carry a rejection")

        return self

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def deferred(
        cls,
        *,
        run_id: str,
        review_id: str,
        document_type: Optional[str] = None,
    ) -> "AuthorizationOutcome":
        return cls(
            run_id=run_id,
            status=OutcomeStatus.DEFERRED,
            document_type=document_type,
            review_id=review_id,
        )

    @classmethod
    def rejected(
        cls,
        *,
        run_id: str,
        kind: RejectionKind,
        reason: str,
        document_type: Optional[str] = None,
    ) -> "AuthorizationOutcome":
        return cls(
            run_id=run_id,
            status=OutcomeStatus.REJECTED,
            document_type=document_type,
            kind=kind,
            reason=reason,
        )

    @classmethod
    def signed(
        cls,
        *,
        run_id: str,
        signed_json: str,
        signed_pdf_path: Path,
        signature_id: str,
        admissible_signers: List[str],
        document_type: Optional[str] = None,
    ) -> "AuthorizationOutcome":
        return cls(
            run_id=run_id,
            status=OutcomeStatus.SIGNED,
            document_type=document_type,
            signed_json=signed_json,
            signed_pdf_path=signed_pdf_path,
            signature_id=signature_id,
            admissible_signers=list(admissible_signers),
        )

    @property
    def is_signed(self) -> bool:
        return self.status == OutcomeStatus.SIGNED
