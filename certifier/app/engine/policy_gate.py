"""
Chain-of-custody and signer policy gate.

Pure and synchronous: no collaborator is called here. The gate runs
before any cryptographic verification so that cheap structural policy
failures stop the run first.

Order of checks (first failure wins):
    1. extractor-is-issuer requirement
    2. deny-list veto
    3. nothing-to-sign (no content signature and no allow-listed signer)

On success the admissible signer subset is returned for propagation.
"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict

from certifier.app.engine.signer_set import (
    intersects,
    resolve_signer_set,
    retain_allowed,
)
from certifier.app.errors import (
    ChainOfCustodyViolation,
    NothingToSign,
    SignerDenied,
)
from certifier.app.schemas.document import Document
from certifier.app.schemas.policy import DocumentTypePolicy, SignerLists


class PolicyGateResult(BaseModel):
    signer_set: List[str]
    admissible_signers: List[str]
    is_allowed: bool

    model_config = ConfigDict(frozen=True)


def check_chain_of_custody(
    document: Document, policy: DocumentTypePolicy
) -> None:
    """
    Raises:
        ChainOfCustodyViolation: if the policy requires the extractor to
            be the issuer and it is not.
    """
    if not policy.extractor_must_be_issuer:
        return

    extractor_url = document.extractor.signature.url
    issuer_url = document.meta_data.issuer.url

    if extractor_url != issuer_url:
        raise ChainOfCustodyViolation()


def evaluate_signer_policy(
    document: Document,
    policy: DocumentTypePolicy,
    lists: SignerLists,
) -> PolicyGateResult:
    """
    Apply the allow/deny lists to the document's signer set.

    Raises:
        SignerDenied: if any signer is deny-listed, even if it is also
            allow-listed.
        NothingToSign: if content is not signable and no signer is
            allow-listed.
    """
    signer_set = resolve_signer_set(document)

    if intersects(signer_set, lists.deny):
        raise SignerDenied()

    is_allowed = intersects(signer_set, lists.allow)

    if not policy.content_signable and not is_allowed:
        raise NothingToSign()

    return PolicyGateResult(
        signer_set=signer_set,
        admissible_signers=retain_allowed(signer_set, lists.allow),
        is_allowed=is_allowed,
    )
