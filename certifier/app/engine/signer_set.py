"""
Signer-set resolution and allow/deny filtering.

The signer set is the ordered list of prior signer identities:

    [extractor.signature.url] + [v.signature.url for v in validators]

Order follows the document. Duplicates are kept: a signer that appears
twice is propagated twice if allow-listed.
"""

from __future__ import annotations

from typing import Iterable, List

from certifier.app.schemas.document import Document


def resolve_signer_set(document: Document) -> List[str]:
    urls = [document.extractor.signature.url]
    urls.extend(v.signature.url for v in document.validators)
    return urls


def intersects(signer_set: Iterable[str], urls: Iterable[str]) -> bool:
    """True if any signer URL is a member of `urls`."""
    members = set(urls)
    return any(url in members for url in signer_set)


def retain_allowed(signer_set: Iterable[str], allow: Iterable[str]) -> List[str]:
    """
    Keep only allow-listed signers.

    Order and duplicates of `signer_set` are preserved; the result is
    always a sub-sequence of it.
    """
    allowed = set(allow)
    return [url for url in signer_set if url in allowed]
