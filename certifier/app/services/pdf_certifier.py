"""
PAdES-based PDF certification service.

Verifies the signatures already embedded in a PDF rendering and applies
the service's own incremental PAdES signature using pyHanko.

Design guarantees:
- Incremental signing (existing signatures stay valid)
- The input file is never modified; output goes to a sibling file
- No content rewriting or reserialization
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional

from pyhanko.keys import load_cert_from_pemder
from pyhanko.pdf_utils.incremental_writer import IncrementalPdfFileWriter
from pyhanko.pdf_utils.misc import PdfReadError
from pyhanko.pdf_utils.reader import PdfFileReader
from pyhanko.sign import signers
from pyhanko.sign.fields import SigFieldSpec, SigSeedSubFilter
from pyhanko.sign.general import CMSExtractionError
from pyhanko.sign.validation import async_validate_pdf_signature
from pyhanko.sign.validation.errors import SignatureValidationError
from pyhanko_certvalidator import ValidationContext

from certifier.app.errors import SigningError, VerificationError
from certifier.app.utils.threads import run_in_worker

logger = logging.getLogger(__name__)


def signature_field_name(signature_id: str) -> str:
    return f"Certification-{signature_id}"


def signed_output_path(pdf_path: Path, signature_id: str) -> Path:
    return pdf_path.with_name(f"signed_{signature_id}.pdf")


def _discard_output(output_pdf: Path) -> None:
    output_pdf.unlink(missing_ok=True)
    logger.info("signed_pdf_discarded", extra={"source": str(output_pdf)})


class PyHankoPdfCertifier:
    """
    pyHanko-backed PdfCertifier.

    When a trust root is configured, existing signatures must also chain
    to it. Without one, only integrity and cryptographic validity are
    required.
    """

    def __init__(
        self,
        *,
        p12_path: Path,
        password: Optional[str],
        trust_root_path: Optional[Path] = None,
        reason: str = "Document certification",
        location: Optional[str] = None,
    ) -> None:
        self._p12_path = Path(p12_path)
        self._password = password
        self._reason = reason
        self._location = location

        self._trust_root = None
        if trust_root_path is not None:
            try:
                self._trust_root = load_cert_from_pemder(str(trust_root_path))
            except (ValueError, IOError) as exc:
                raise RuntimeError(
                    f"PDF trust anchor configuration failed: {exc}"
                ) from exc

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def verify_signatures(self, pdf_path: Path) -> bool:
        pdf_bytes = await run_in_worker(Path(pdf_path).read_bytes)

        try:
            reader = PdfFileReader(io.BytesIO(pdf_bytes))
            embedded = list(reader.embedded_signatures)
        except PdfReadError as exc:
            raise VerificationError(f"PDF could not be parsed: {exc}") from exc
        except ValueError as exc:
            # Damaged signature dictionaries or CMS blobs
            logger.warning("pdf_signature_invalid", extra={"reason": str(exc)})
            return False

        # Unsigned renderings carry nothing to invalidate
        if not embedded:
            return True

        for sig in embedded:
            try:
                status = await async_validate_pdf_signature(
                    sig,
                    signer_validation_context=self._validation_context(),
                )
            except PdfReadError as exc:
                raise VerificationError(
                    f"PDF signature could not be read: {exc}"
                ) from exc
            except (
                SignatureValidationError,
                CMSExtractionError,
                ValueError,
            ) as exc:
                logger.warning(
                    "pdf_signature_invalid",
                    extra={"source": sig.field_name, "reason": str(exc)},
                )
                return False

            if not (status.intact and status.valid):
                logger.warning(
                    "pdf_signature_invalid",
                    extra={"source": sig.field_name, "reason": "not intact"},
                )
                return False

            if self._trust_root is not None and not status.trusted:
                logger.warning(
                    "pdf_signature_untrusted",
                    extra={"source": sig.field_name},
                )
                return False

        return True

    def _validation_context(self) -> ValidationContext:
        trust_roots = [self._trust_root] if self._trust_root is not None else []
        return ValidationContext(trust_roots=trust_roots, allow_fetching=False)

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    async def sign_pdf(self, pdf_path: Path, signature_id: str) -> Path:
        pdf_path = Path(pdf_path)
        output_pdf = signed_output_path(pdf_path, signature_id)

        # An abandoned (timed out) signing run must not leave its output behind
        await run_in_worker(
            self._sign,
            pdf_path,
            output_pdf,
            signature_id,
            on_abandon=_discard_output,
        )

        logger.info(
            "pdf_signed",
            extra={"signature_id": signature_id, "source": str(pdf_path)},
        )
        return output_pdf

    def _load_signer(self) -> signers.SimpleSigner:
        try:
            signer = signers.SimpleSigner.load_pkcs12(
                str(self._p12_path),
                passphrase=(
                    self._password.encode("utf-8") if self._password else None
                ),
            )
        except Exception as exc:
            raise SigningError(
                f"Failed to load PKCS#12 signing key: {exc}"
            ) from exc

        if signer is None:
            raise SigningError("Failed to load PKCS#12 signing key")
        return signer

    def _sign(self, input_pdf: Path, output_pdf: Path, signature_id: str) -> Path:
        signer = self._load_signer()
        field_name = signature_field_name(signature_id)

        try:
            outf = output_pdf.open("xb")
        except OSError as exc:
            raise SigningError(
                f"Signed output could not be created: {exc}"
            ) from exc

        # Incremental PAdES sealing; a partial output never survives
        try:
            with input_pdf.open("rb") as inf, outf:
                writer = IncrementalPdfFileWriter(inf)

                signers.sign_pdf(
                    writer,
                    signer=signer,
                    output=outf,
                    signature_meta=signers.PdfSignatureMetadata(
                        field_name=field_name,
                        reason=self._reason,
                        location=self._location,
                        subfilter=SigSeedSubFilter.PADES,
                    ),
                    new_field_spec=SigFieldSpec(sig_field_name=field_name),
                )
        except Exception as exc:
            output_pdf.unlink(missing_ok=True)
            raise SigningError(f"PAdES signing failed: {exc}") from exc

        return output_pdf
