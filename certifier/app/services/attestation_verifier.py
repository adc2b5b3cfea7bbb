"""
Attestation signature verification.

Each extractor/validator entry names its signer by certificate URL. The
certificate is fetched over HTTP, cached inside the run's working
directory, and its public key checks the entry's payload against the
canonical signing payload for that position in the record.

Outcomes:
- False:              missing, undecodable or mismatching signature
- VerificationError:  certificate unreachable/unparsable, unsupported key,
                      unparsable record
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import httpx
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from certifier.app.errors import VerificationError
from certifier.app.utils.canonical import (
    content_signing_payload,
    extractor_signing_payload,
    validator_signing_payload,
)
from certifier.app.utils.signatures import (
    UnsupportedKeyType,
    decode_signature,
    verify_bytes,
)
from certifier.app.utils.threads import run_in_worker

logger = logging.getLogger(__name__)

CERTIFICATE_CACHE_DIR = "certificates"


class CertificateAttestationVerifier:
    def __init__(self, *, http_client: httpx.AsyncClient) -> None:
        self.client = http_client

    # ------------------------------------------------------------------
    # AttestationVerifier
    # ------------------------------------------------------------------

    async def verify_extractor_signature(
        self, raw_json: str, work_dir: Path
    ) -> bool:
        record = self._parse(raw_json)
        extractor = record.get("extractor") or {}

        return await self._verify_entry(
            extractor.get("signature") or {},
            extractor_signing_payload(record),
            Path(work_dir),
        )

    async def verify_validator_signatures(
        self, raw_json: str, work_dir: Path
    ) -> List[bool]:
        record = self._parse(raw_json)
        validators = record.get("validators") or []

        results: List[bool] = []
        for index, validator in enumerate(validators):
            signature = validator.get("signature") or {}
            valid = await self._verify_entry(
                signature,
                validator_signing_payload(record, index),
                Path(work_dir),
            )

            # An independent content signature must hold as well
            if valid and validator.get("contentSignature"):
                valid = await self._verify_entry(
                    {
                        "url": signature.get("url"),
                        "payload": validator.get("contentSignature"),
                    },
                    content_signing_payload(record),
                    Path(work_dir),
                )

            results.append(valid)

        return results

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse(raw_json: str) -> Dict[str, Any]:
        try:
            record = json.loads(raw_json)
        except json.JSONDecodeError as exc:
            raise VerificationError(f"Record is not valid JSON: {exc}") from exc
        if not isinstance(record, dict):
            raise VerificationError("Record must be a JSON object")
        return record

    async def _verify_entry(
        self,
        signature: Dict[str, Any],
        payload: bytes,
        work_dir: Path,
    ) -> bool:
        url = signature.get("url")
        signature_bytes = decode_signature(signature.get("payload"))

        if not url or signature_bytes is None:
            return False

        certificate = await self._certificate(url, work_dir)

        try:
            valid = verify_bytes(certificate.public_key(), signature_bytes, payload)
        except UnsupportedKeyType as exc:
            raise VerificationError(str(exc)) from exc

        if not valid:
            logger.info("attestation_signature_mismatch", extra={"source": url})
        return valid

    async def _certificate(self, url: str, work_dir: Path) -> x509.Certificate:
        cache_path = (
            work_dir
            / CERTIFICATE_CACHE_DIR
            / f"{hashlib.sha256(url.encode('utf-8')).hexdigest()}.pem"
        )

        if cache_path.exists():
            data = await run_in_worker(cache_path.read_bytes)
        else:
            try:
                data = await self._download(url)
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                raise VerificationError(
                    f"Certificate could not be fetched ({url}): {exc}"
                ) from exc

        certificate = self._load_certificate(data, url)

        if not cache_path.exists():
            cache_path.parent.mkdir(parents=True, exist_ok=True)
            await run_in_worker(
                cache_path.write_bytes,
                certificate.public_bytes(serialization.Encoding.PEM),
            )

        return certificate

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _download(self, url: str) -> bytes:
        response = await self.client.get(url, follow_redirects=True)
        if response.status_code != 200:
            raise VerificationError(
                f"Certificate source returned status {response.status_code} ({url})"
            )
        return response.content

    @staticmethod
    def _load_certificate(data: bytes, url: str) -> x509.Certificate:
        try:
            if b"-----BEGIN" in data:
                return x509.load_pem_x509_certificate(data)
            return x509.load_der_x509_certificate(data)
        except ValueError as exc:
            raise VerificationError(
                f"Certificate could not be parsed ({url}): {exc}"
            ) from exc
