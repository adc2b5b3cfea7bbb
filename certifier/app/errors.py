"""
Error taxonomy for the certification service.

Two families live here:

- GatewayError and its subclasses are raised by collaborator adapters
  (policy store, storage, verification, retrieval, hashing, signing).
  They describe a fault in an external capability.

- AuthorizationRejected and its subclasses are raised by the engine's
  gates. Each carries a machine-checkable RejectionKind plus a
  human-readable reason, and is converted into a REJECTED outcome at
  the run boundary.

Programming errors (TypeError, AttributeError, ...) are deliberately
not part of either family and must propagate.
"""

from __future__ import annotations

from typing import Optional

from certifier.app.schemas.outcome import RejectionKind


# ---------------------------------------------------------------------------
# Collaborator faults
# ---------------------------------------------------------------------------

class GatewayError(RuntimeError):
    """Raised when an external collaborator fails."""


class PolicyStoreError(GatewayError):
    """Raised when policy or allow/deny-list configuration cannot be read."""


class StorageError(GatewayError):
    """Raised when manual-review persistence fails."""


class VerificationError(GatewayError):
    """Raised when a signature cannot be checked at all."""


class RetrievalError(GatewayError):
    """Raised when the PDF rendering cannot be fetched."""


class HashingError(GatewayError):
    """Raised when the PDF content hash cannot be computed."""


class SigningError(GatewayError):
    """Raised when applying a PDF or JSON signature fails."""


# ---------------------------------------------------------------------------
# Gate rejections
# ---------------------------------------------------------------------------

class AuthorizationRejected(Exception):
    """
    Terminal rejection raised by an engine gate.

    Subclasses fix the kind and a default reason. A more specific reason
    may be passed at the raise site.
    """

    kind: RejectionKind
    default_reason: str = "authorization rejected"

    def __init__(self, reason: Optional[str] = None) -> None:
        self.reason = reason or self.default_reason
        super().__init__(self.reason)


class PolicyUnresolved(AuthorizationRejected):
    kind = RejectionKind.POLICY_UNRESOLVED
    default_reason = "unsupported document type"


class MalformedDocument(AuthorizationRejected):
    kind = RejectionKind.MALFORMED_DOCUMENT
    default_reason = "document could not be parsed"


class ChainOfCustodyViolation(AuthorizationRejected):
    kind = RejectionKind.CHAIN_OF_CUSTODY_VIOLATION
    default_reason = "extractor should be the issuer"


class SignerDenied(AuthorizationRejected):
    kind = RejectionKind.SIGNER_DENIED
    default_reason = "one or more signatures are denied"


class NothingToSign(AuthorizationRejected):
    kind = RejectionKind.NOTHING_TO_SIGN
    default_reason = "nothing to be signed"


class InvalidAttestation(AuthorizationRejected):
    kind = RejectionKind.INVALID_ATTESTATION
    default_reason = "one or more validator signatures are not valid"


class ContentMismatch(AuthorizationRejected):
    kind = RejectionKind.CONTENT_MISMATCH
    default_reason = "pdf and the machine readable file do not match"


class InvalidExistingPdfSignature(AuthorizationRejected):
    kind = RejectionKind.INVALID_EXISTING_PDF_SIGNATURE
    default_reason = "one or more signatures in the pdf are invalid"


class SigningFailure(AuthorizationRejected):
    kind = RejectionKind.SIGNING_FAILURE
    default_reason = "signing failed"


class StorageFailure(AuthorizationRejected):
    kind = RejectionKind.STORAGE_FAILURE
    default_reason = "document could not be stored for manual review"
