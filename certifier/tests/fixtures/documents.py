import copy
import json
from typing import Any, Dict, Iterable, Optional, Sequence

from certifier.app.utils.canonical import (
    extractor_signing_payload,
    validator_signing_payload,
)
from certifier.app.utils.signatures import encode_signature, sign_bytes
from certifier.tests.fixtures.credentials import Credentials


ISSUER_URL = "https://issuer.example/cert.pem"
VALIDATOR_URL = "https://validator.example/cert.pem"
THIRD_PARTY_URL = "https://third-party.example/cert.pem"
CERTIFIER_URL = "https://certifier.example/cert.pem"

DOCUMENT_TYPE = "passport"


def document_record(
    *,
    document_type: str = DOCUMENT_TYPE,
    issuer_url: str = ISSUER_URL,
    extractor_url: str = ISSUER_URL,
    validator_urls: Iterable[str] = (),
    pdf_hash: Optional[str] = None,
    content: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Unsigned identity record (signature payloads are placeholders)."""
    meta_data: Dict[str, Any] = {
        "documentType": document_type,
        "documentId": "doc-001",
        "issuer": {"name": "Registry of Persons", "url": issuer_url},
    }
    if pdf_hash is not None:
        meta_data["pdfHash"] = pdf_hash

    return {
        "metaData": meta_data,
        "content": content
        if content is not None
        else {"name": "Jane Doe", "dateOfBirth": "1990-01-01"},
        "extractor": {"signature": {"url": extractor_url, "payload": "AA=="}},
        "validators": [
            {
                "signature": {"url": url, "payload": "AA=="},
                "signedSignatures": [],
                "isContentSigned": False,
            }
            for url in validator_urls
        ],
    }


def to_json(record: Dict[str, Any]) -> str:
    return json.dumps(record, ensure_ascii=False)


def sign_record(
    record: Dict[str, Any],
    *,
    extractor: Credentials,
    validators: Sequence[Credentials] = (),
) -> Dict[str, Any]:
    """
    Produce a record whose extractor and validator signatures verify.

    Validator entries already in `record` are replaced.
    """
    signed = copy.deepcopy(record)
    signed["extractor"] = {"signature": {"url": extractor.url}}
    signed["validators"] = []

    signed["extractor"]["signature"]["payload"] = encode_signature(
        sign_bytes(extractor.private_key, extractor_signing_payload(signed))
    )

    for index, credentials in enumerate(validators):
        signed["validators"].append(
            {
                "signature": {"url": credentials.url},
                "signedSignatures": [extractor.url],
                "isContentSigned": False,
            }
        )
        signed["validators"][index]["signature"]["payload"] = encode_signature(
            sign_bytes(
                credentials.private_key,
                validator_signing_payload(signed, index),
            )
        )

    return signed
