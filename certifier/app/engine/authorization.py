"""
Document signing authorization engine.

IMPORTANT:
The engine is an ORCHESTRATOR. It owns no persisted state and performs
no cryptography itself.

Its sole responsibilities are:
- choosing automatic vs. manual processing per document type
- enforcing chain-of-custody and allow/deny-list policy
- enforcing the order verification -> content binding -> signing
- normalizing every failure into a single AuthorizationOutcome

Execution order (automatic mode):
    1. Parse document
    2. Resolve document type policy (defer when not automatic)
    3. Chain-of-custody check
    4. Allow/deny-list gate, admissible signer subset
    5. Extractor signature verification
    6. Validator signature verification
    7. PDF retrieval and content binding
    8. Existing PDF signature verification
    9. PDF signing, then JSON signing

Every step is a hard gate. The first failure ends the run as REJECTED
and no later collaborator is called.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Dict, Optional, Type, TypeVar

import anyio
import httpx
from pydantic import ValidationError

from certifier.app.config import CertifierSettings
from certifier.app.engine.content_binding import bind_content
from certifier.app.engine.policy_gate import (
    check_chain_of_custody,
    evaluate_signer_policy,
)
from certifier.app.errors import (
    AuthorizationRejected,
    ContentMismatch,
    GatewayError,
    InvalidAttestation,
    InvalidExistingPdfSignature,
    MalformedDocument,
    PolicyUnresolved,
    SigningFailure,
    StorageFailure,
)
from certifier.app.events import (
    AuthorizationEvent,
    AuthorizationEventEmitter,
    AuthorizationEventType,
    NullEventEmitter,
)
from certifier.app.gateways.protocols import (
    AttestationVerifier,
    JsonSigner,
    PdfCertifier,
    PdfHasher,
    PdfRetriever,
    PolicyStore,
    ReviewStore,
)
from certifier.app.schemas.document import Document
from certifier.app.schemas.outcome import (
    AuthorizationOutcome,
    AuthorizationState,
)
from certifier.app.schemas.policy import DocumentTypePolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Version number assigned to a document when first stored for review
INITIAL_REVIEW_VERSION = 1


@dataclass
class _RunContext:
    run_id: str
    emitter: AuthorizationEventEmitter
    state: AuthorizationState = AuthorizationState.START
    document_type: Optional[str] = None


class AuthorizationEngine:
    """
    Central signing authorization engine.

    Collaborators are injected explicitly. Use from_config() for the
    production wiring.
    """

    def __init__(
        self,
        *,
        policy_store: PolicyStore,
        review_store: ReviewStore,
        attestation_verifier: AttestationVerifier,
        pdf_retriever: PdfRetriever,
        pdf_hasher: PdfHasher,
        pdf_certifier: PdfCertifier,
        json_signer: JsonSigner,
        work_dir: Path,
        collaborator_timeout_seconds: Optional[float] = None,
        pdf_source_override: Optional[str] = None,
    ) -> None:
        self._policy_store = policy_store
        self._review_store = review_store
        self._attestation_verifier = attestation_verifier
        self._pdf_retriever = pdf_retriever
        self._pdf_hasher = pdf_hasher
        self._pdf_certifier = pdf_certifier
        self._json_signer = json_signer
        self._work_dir = Path(work_dir)
        self._timeout = collaborator_timeout_seconds
        self._pdf_source_override = pdf_source_override

    # ------------------------------------------------------------------
    # Integration constructor (composition root)
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: CertifierSettings,
        *,
        http_client: httpx.AsyncClient,
    ) -> "AuthorizationEngine":
        """
        Construct a fully wired engine from runtime configuration.

        The HTTP client is owned by the caller and shared by the
        retrieval and verification adapters.
        """
        from certifier.app.services.attestation_verifier import (
            CertificateAttestationVerifier,
        )
        from certifier.app.services.json_signer import CertificateJsonSigner
        from certifier.app.services.pdf_certifier import PyHankoPdfCertifier
        from certifier.app.services.pdf_hashing import PdfContentHasher
        from certifier.app.services.pdf_retrieval import HttpPdfRetriever
        from certifier.app.services.policy_store import FilePolicyStore
        from certifier.app.services.review_store import FilesystemReviewStore

        config.require_signing_credentials()

        return cls(
            policy_store=FilePolicyStore(config.policy_dir),
            review_store=FilesystemReviewStore(config.review_store_dir),
            attestation_verifier=CertificateAttestationVerifier(
                http_client=http_client,
            ),
            pdf_retriever=HttpPdfRetriever(
                http_client=http_client,
                max_bytes=config.max_pdf_size_bytes,
            ),
            pdf_hasher=PdfContentHasher(),
            pdf_certifier=PyHankoPdfCertifier(
                p12_path=config.signing_p12_path,
                password=config.signing_password,
                trust_root_path=config.trust_root_cert_path,
                reason=config.signature_reason,
                location=config.signature_location,
            ),
            json_signer=CertificateJsonSigner(
                p12_path=config.signing_p12_path,
                password=config.signing_password,
                certificate_url=config.public_certificate_url,
            ),
            work_dir=config.work_dir,
            collaborator_timeout_seconds=config.collaborator_timeout_seconds,
            pdf_source_override=config.pdf_source_override,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def authorize_automatic(
        self,
        *,
        raw_json: str,
        pdf_source: str,
        requester: Optional[str] = None,
        run_id: Optional[str] = None,
        emitter: Optional[AuthorizationEventEmitter] = None,
    ) -> AuthorizationOutcome:
        """
        Authorize a freshly submitted document.

        Document types that are not automatically processable are stored
        for manual review and the run ends as DEFERRED.
        """
        return await self._run(
            raw_json=raw_json,
            pdf_source=pdf_source,
            requester=requester,
            dispatch=True,
            run_id=run_id,
            emitter=emitter,
        )

    async def authorize_manual(
        self,
        *,
        raw_json: str,
        pdf_source: str,
        run_id: Optional[str] = None,
        emitter: Optional[AuthorizationEventEmitter] = None,
    ) -> AuthorizationOutcome:
        """
        Authorize a document released by a reviewer.

        The automatic flag is not consulted; every other gate applies.
        """
        return await self._run(
            raw_json=raw_json,
            pdf_source=pdf_source,
            requester=None,
            dispatch=False,
            run_id=run_id,
            emitter=emitter,
        )

    # ------------------------------------------------------------------
    # Run boundary
    # ------------------------------------------------------------------

    async def _run(
        self,
        *,
        raw_json: str,
        pdf_source: str,
        requester: Optional[str],
        dispatch: bool,
        run_id: Optional[str],
        emitter: Optional[AuthorizationEventEmitter],
    ) -> AuthorizationOutcome:
        ctx = _RunContext(
            run_id=run_id or str(uuid.uuid4()),
            emitter=emitter or NullEventEmitter(),
        )

        await self._emit(
            ctx,
            AuthorizationEventType.RUN_STARTED,
            {"mode": "automatic" if dispatch else "manual"},
        )

        try:
            try:
                document = self._parse(raw_json)
                ctx.document_type = document.document_type

                policy = await self._resolve_policy(ctx, document)

                if dispatch and not policy.automatic:
                    outcome = await self._defer(
                        ctx,
                        document=document,
                        raw_json=raw_json,
                        pdf_source=pdf_source,
                        requester=requester,
                    )
                else:
                    outcome = await self._certify(
                        ctx,
                        document=document,
                        raw_json=raw_json,
                        policy=policy,
                        pdf_source=pdf_source,
                    )

            except AuthorizationRejected as rejection:
                outcome = await self._reject(ctx, rejection)

        except Exception as exc:
            await self._emit(
                ctx,
                AuthorizationEventType.RUN_FAILED,
                {
                    "error": str(exc),
                    "exception_type": type(exc).__name__,
                    "stage": ctx.state.value,
                },
            )
            raise

        await self._emit(
            ctx,
            AuthorizationEventType.RUN_COMPLETED,
            {
                "status": outcome.status.value,
                "kind": outcome.kind.value if outcome.kind else None,
            },
        )
        return outcome

    # ------------------------------------------------------------------
    # Mode dispatch
    # ------------------------------------------------------------------

    @staticmethod
    def _parse(raw_json: str) -> Document:
        try:
            return Document.from_json(raw_json)
        except ValidationError as exc:
            raise MalformedDocument(
                f"document could not be parsed: {exc.error_count()} error(s)"
            ) from exc

    async def _resolve_policy(
        self, ctx: _RunContext, document: Document
    ) -> DocumentTypePolicy:
        policy = await self._call(
            ctx,
            self._policy_store.resolve_policy(document.document_type),
            on_fault=PolicyUnresolved,
            reason="document policy could not be resolved",
        )

        if policy is None:
            raise PolicyUnresolved(
                f"unsupported document type: {document.document_type}"
            )

        await self._advance(
            ctx,
            AuthorizationState.POLICY_RESOLVED,
            policy.model_dump(),
        )
        return policy

    async def _defer(
        self,
        ctx: _RunContext,
        *,
        document: Document,
        raw_json: str,
        pdf_source: str,
        requester: Optional[str],
    ) -> AuthorizationOutcome:
        review_id = str(uuid.uuid4())

        metadata: Dict[str, Any] = {
            "runId": ctx.run_id,
            "reviewId": review_id,
            "version": INITIAL_REVIEW_VERSION,
            "documentType": document.document_type,
            "documentId": document.meta_data.document_id,
            "requester": requester,
            "pdfSource": pdf_source,
        }

        await self._call(
            ctx,
            self._review_store.store_for_manual_review(
                raw_json.encode("utf-8"),
                metadata,
                document.document_type,
                review_id,
                INITIAL_REVIEW_VERSION,
            ),
            on_fault=StorageFailure,
            reason="document could not be stored for manual review",
        )

        await self._advance(
            ctx, AuthorizationState.DEFERRED, {"review_id": review_id}
        )

        logger.info(
            "authorization_deferred",
            extra={
                "run_id": ctx.run_id,
                "document_type": ctx.document_type,
                "review_id": review_id,
            },
        )

        return AuthorizationOutcome.deferred(
            run_id=ctx.run_id,
            review_id=review_id,
            document_type=ctx.document_type,
        )

    # ------------------------------------------------------------------
    # Certification pipeline
    # ------------------------------------------------------------------

    async def _certify(
        self,
        ctx: _RunContext,
        *,
        document: Document,
        raw_json: str,
        policy: DocumentTypePolicy,
        pdf_source: str,
    ) -> AuthorizationOutcome:
        # --------------------------------------------------------------
        # Policy gate (no cryptography yet)
        # --------------------------------------------------------------
        check_chain_of_custody(document, policy)
        await self._advance(ctx, AuthorizationState.CHAIN_CHECKED)

        lists = await self._call(
            ctx,
            self._policy_store.resolve_lists(),
            on_fault=PolicyUnresolved,
            reason="signer lists could not be resolved",
        )

        gate = evaluate_signer_policy(document, policy, lists)
        await self._advance(
            ctx,
            AuthorizationState.SIGNERS_FILTERED,
            {
                "signer_count": len(gate.signer_set),
                "admissible_signers": gate.admissible_signers,
            },
        )

        work_dir = self._prepare_work_dir(ctx)

        # --------------------------------------------------------------
        # Attestation verification
        #
        # Runs for every prior signer, including those that will not be
        # propagated: an invalid signature means tampering.
        # --------------------------------------------------------------
        extractor_valid = await self._call(
            ctx,
            self._attestation_verifier.verify_extractor_signature(
                raw_json, work_dir
            ),
            on_fault=InvalidAttestation,
            reason="extractor's signature could not be verified",
        )
        if not extractor_valid:
            raise InvalidAttestation("extractor's signature is not valid")

        await self._advance(ctx, AuthorizationState.EXTRACTOR_VERIFIED)

        validator_results = await self._call(
            ctx,
            self._attestation_verifier.verify_validator_signatures(
                raw_json, work_dir
            ),
            on_fault=InvalidAttestation,
            reason="validator signatures could not be verified",
        )
        if len(validator_results) != len(document.validators) or not all(
            validator_results
        ):
            raise InvalidAttestation()

        await self._advance(
            ctx,
            AuthorizationState.VALIDATORS_VERIFIED,
            {"validator_count": len(validator_results)},
        )

        # --------------------------------------------------------------
        # Content binding (strictly before any PDF signature)
        # --------------------------------------------------------------
        source = self._pdf_source_override or pdf_source

        pdf_path = await self._call(
            ctx,
            self._pdf_retriever.fetch_pdf(source, work_dir),
            on_fault=SigningFailure,
            reason="pdf could not be retrieved",
        )

        binding = await self._call(
            ctx,
            bind_content(document, pdf_path, self._pdf_hasher),
            on_fault=ContentMismatch,
            reason="pdf content could not be hashed",
        )

        await self._advance(
            ctx,
            AuthorizationState.CONTENT_BOUND,
            {"content_hash": binding.computed_hash},
        )

        # --------------------------------------------------------------
        # Certification
        # --------------------------------------------------------------
        pdf_signatures_valid = await self._call(
            ctx,
            self._pdf_certifier.verify_signatures(pdf_path),
            on_fault=InvalidExistingPdfSignature,
            reason="signatures in the pdf could not be verified",
        )
        if not pdf_signatures_valid:
            raise InvalidExistingPdfSignature()

        await self._advance(ctx, AuthorizationState.PDF_VERIFIED)

        signature_id = str(uuid.uuid4())

        signed_pdf_path = await self._call(
            ctx,
            self._pdf_certifier.sign_pdf(pdf_path, signature_id),
            on_fault=SigningFailure,
            reason="pdf could not be signed",
        )

        # A signed PDF is never returned without its signed JSON
        try:
            signed_json = await self._call(
                ctx,
                self._json_signer.sign_json(
                    raw_json,
                    policy.content_signable,
                    gate.admissible_signers,
                ),
                on_fault=SigningFailure,
                reason="json could not be signed",
            )
        except BaseException:
            self._discard(ctx, signed_pdf_path)
            raise

        await self._advance(
            ctx,
            AuthorizationState.SIGNED,
            {"signature_id": signature_id},
        )

        logger.info(
            "authorization_signed",
            extra={
                "run_id": ctx.run_id,
                "document_type": ctx.document_type,
                "signature_id": signature_id,
            },
        )

        return AuthorizationOutcome.signed(
            run_id=ctx.run_id,
            signed_json=signed_json,
            signed_pdf_path=signed_pdf_path,
            signature_id=signature_id,
            admissible_signers=gate.admissible_signers,
            document_type=ctx.document_type,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _call(
        self,
        ctx: _RunContext,
        awaitable: Awaitable[T],
        *,
        on_fault: Type[AuthorizationRejected],
        reason: str,
    ) -> T:
        """
        Await one collaborator call under the configured timeout.

        Collaborator faults (GatewayError, OSError, timeouts) are
        normalized into `on_fault`. Gate rejections raised inside the
        awaitable pass through unchanged.
        """
        try:
            with anyio.fail_after(self._timeout):
                return await awaitable
        except (GatewayError, OSError) as exc:
            logger.warning(
                "collaborator_fault",
                extra={
                    "run_id": ctx.run_id,
                    "stage": ctx.state.value,
                    "error_type": type(exc).__name__,
                },
            )
            detail = str(exc) or type(exc).__name__
            raise on_fault(f"{reason}: {detail}") from exc

    def _prepare_work_dir(self, ctx: _RunContext) -> Path:
        work_dir = self._work_dir / ctx.run_id
        try:
            work_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SigningFailure(
                f"working directory could not be prepared: {exc}"
            ) from exc
        return work_dir

    @staticmethod
    def _discard(ctx: _RunContext, path: Path) -> None:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError:
            logger.warning(
                "signed_pdf_discard_failed",
                extra={"run_id": ctx.run_id, "source": str(path)},
            )

    async def _reject(
        self, ctx: _RunContext, rejection: AuthorizationRejected
    ) -> AuthorizationOutcome:
        logger.info(
            "authorization_rejected",
            extra={
                "run_id": ctx.run_id,
                "document_type": ctx.document_type,
                "stage": ctx.state.value,
                "kind": rejection.kind.value,
                "reason": rejection.reason,
            },
        )

        await self._emit(
            ctx,
            AuthorizationEventType.REJECTED,
            {
                "stage": ctx.state.value,
                "kind": rejection.kind.value,
                "reason": rejection.reason,
            },
        )
        ctx.state = AuthorizationState.REJECTED

        return AuthorizationOutcome.rejected(
            run_id=ctx.run_id,
            kind=rejection.kind,
            reason=rejection.reason,
            document_type=ctx.document_type,
        )

    async def _advance(
        self,
        ctx: _RunContext,
        state: AuthorizationState,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        ctx.state = state
        await self._emit(ctx, AuthorizationEventType(state.value), details)

    @staticmethod
    async def _emit(
        ctx: _RunContext,
        event_type: AuthorizationEventType,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        await ctx.emitter.emit(
            AuthorizationEvent(
                run_id=ctx.run_id,
                event_type=event_type,
                details=details,
            )
        )
