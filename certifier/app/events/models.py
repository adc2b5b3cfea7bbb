from __future__ import annotations

from typing import Any, Dict, Optional
from enum import Enum
from datetime import datetime, timezone
from uuid import uuid4, UUID

from pydantic import BaseModel, Field, ConfigDict


# ----------------------------------------------------------------------
# Event Types
# ----------------------------------------------------------------------
class AuthorizationEventType(str, Enum):
    """
    Progression events emitted during an authorization run.

    Stage events mirror AuthorizationState one-to-one.
    """

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------
    RUN_STARTED = "run_started"
    RUN_COMPLETED = "run_completed"
    RUN_FAILED = "run_failed"

    # ------------------------------------------------------------------
    # Mode dispatch
    # ------------------------------------------------------------------
    POLICY_RESOLVED = "policy_resolved"
    DEFERRED = "deferred"

    # ------------------------------------------------------------------
    # Policy gate
    # ------------------------------------------------------------------
    CHAIN_CHECKED = "chain_checked"
    SIGNERS_FILTERED = "signers_filtered"

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------
    EXTRACTOR_VERIFIED = "extractor_verified"
    VALIDATORS_VERIFIED = "validators_verified"
    CONTENT_BOUND = "content_bound"
    PDF_VERIFIED = "pdf_verified"

    # ------------------------------------------------------------------
    # Certification
    # ------------------------------------------------------------------
    SIGNED = "signed"
    REJECTED = "rejected"


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class AuthorizationEvent(BaseModel):
    """
    An immutable observation of a state transition within a run.

    Events are observational and never authoritative: the returned
    AuthorizationOutcome is the only result of a run.
    """

    event_id: UUID = Field(default_factory=uuid4)
    run_id: str = Field(..., description="The authorization run identifier")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: AuthorizationEventType

    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
