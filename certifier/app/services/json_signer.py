"""
JSON attestation signer.

Appends this service's validator entry to the machine-readable record.
The entry names the admissible prior signers the service vouches for
and carries a signature over the canonical validator payload at its own
index, so any verifier holding the published certificate can check it.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from cryptography.hazmat.primitives.serialization import pkcs12

from certifier.app.errors import SigningError
from certifier.app.utils.canonical import (
    content_signing_payload,
    validator_signing_payload,
)
from certifier.app.utils.signatures import (
    UnsupportedKeyType,
    encode_signature,
    sign_bytes,
)
from certifier.app.utils.threads import run_in_worker

logger = logging.getLogger(__name__)


class CertificateJsonSigner:
    def __init__(
        self,
        *,
        p12_path: Path,
        password: Optional[str],
        certificate_url: str,
    ) -> None:
        self._p12_path = Path(p12_path)
        self._password = password
        self._certificate_url = certificate_url

    async def sign_json(
        self,
        raw_json: str,
        content_signable: bool,
        admissible_signers: Sequence[str],
    ) -> str:
        return await run_in_worker(
            self._sign, raw_json, content_signable, list(admissible_signers)
        )

    def _load_key(self):
        try:
            data = self._p12_path.read_bytes()
            private_key, _certificate, _chain = pkcs12.load_key_and_certificates(
                data,
                self._password.encode("utf-8") if self._password else None,
            )
        except (OSError, ValueError) as exc:
            raise SigningError(
                f"Failed to load PKCS#12 signing key: {exc}"
            ) from exc

        if private_key is None:
            raise SigningError("PKCS#12 bundle holds no private key")
        return private_key

    def _sign(
        self,
        raw_json: str,
        content_signable: bool,
        admissible_signers: List[str],
    ) -> str:
        try:
            record: Dict[str, Any] = json.loads(raw_json)
        except json.JSONDecodeError as exc:
            raise SigningError(f"Record is not valid JSON: {exc}") from exc

        if not isinstance(record, dict):
            raise SigningError("Record must be a JSON object")

        validators = record.setdefault("validators", [])
        if not isinstance(validators, list):
            raise SigningError("Record validators must be a JSON array")

        private_key = self._load_key()

        entry: Dict[str, Any] = {
            "signature": {"url": self._certificate_url},
            "signedSignatures": admissible_signers,
            "isContentSigned": content_signable,
        }

        try:
            if content_signable:
                entry["contentSignature"] = encode_signature(
                    sign_bytes(private_key, content_signing_payload(record))
                )

            validators.append(entry)
            entry["signature"]["payload"] = encode_signature(
                sign_bytes(
                    private_key,
                    validator_signing_payload(record, len(validators) - 1),
                )
            )
        except UnsupportedKeyType as exc:
            raise SigningError(str(exc)) from exc

        logger.info(
            "json_signed",
            extra={"source": self._certificate_url},
        )

        return json.dumps(record, ensure_ascii=False)
