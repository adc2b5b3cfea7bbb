"""
Canonical signing payloads.

Attestation signatures never cover the raw JSON text. They cover a
canonical byte form of the parts of the record that existed when the
signer attested:

- extractor:  {metaData, content, extractor (payload removed)}
- validator i: {metaData, content, extractor,
                validators[:i] + [validator i (payload removed)]}

IMPORTANT DESIGN RULE:
- Signer and verifier MUST build payloads through this module.
- This module produces bytes and performs no cryptography.
"""

import copy
import json
from typing import Any, Dict


def canonicalize_json(payload: Any) -> bytes:
    return json.dumps(
        payload,
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    ).encode("utf-8")


def _without_payload(entry: Dict[str, Any]) -> Dict[str, Any]:
    stripped = copy.deepcopy(entry)
    signature = stripped.get("signature")
    if isinstance(signature, dict):
        signature.pop("payload", None)
    return stripped


def extractor_signing_payload(record: Dict[str, Any]) -> bytes:
    return canonicalize_json(
        {
            "metaData": record.get("metaData"),
            "content": record.get("content", {}),
            "extractor": _without_payload(record.get("extractor") or {}),
        }
    )


def validator_signing_payload(record: Dict[str, Any], index: int) -> bytes:
    """
    Payload signed by the validator at position `index`.

    The validator attests to everything that precedes it plus its own
    entry without the signature payload.

    Raises:
        IndexError: if the record has no validator at `index`.
    """
    validators = record.get("validators") or []
    if index < 0 or index >= len(validators):
        raise IndexError(f"no validator at index {index}")

    return canonicalize_json(
        {
            "metaData": record.get("metaData"),
            "content": record.get("content", {}),
            "extractor": record.get("extractor"),
            "validators": list(validators[:index])
            + [_without_payload(validators[index])],
        }
    )


def content_signing_payload(record: Dict[str, Any]) -> bytes:
    """Payload of an independent content signature."""
    return canonicalize_json(record.get("content", {}))
