import pytest

from certifier.app.engine.policy_gate import (
    check_chain_of_custody,
    evaluate_signer_policy,
)
from certifier.app.errors import (
    ChainOfCustodyViolation,
    NothingToSign,
    SignerDenied,
)
from certifier.app.schemas.document import Document
from certifier.app.schemas.outcome import RejectionKind
from certifier.app.schemas.policy import DocumentTypePolicy, SignerLists
from certifier.tests.fixtures.documents import (
    ISSUER_URL,
    THIRD_PARTY_URL,
    VALIDATOR_URL,
    document_record,
    to_json,
)


def _document(**kwargs) -> Document:
    return Document.from_json(to_json(document_record(**kwargs)))


def _policy(
    *,
    automatic: bool = True,
    extractor_must_be_issuer: bool = True,
    content_signable: bool = False,
) -> DocumentTypePolicy:
    return DocumentTypePolicy(
        automatic=automatic,
        extractor_must_be_issuer=extractor_must_be_issuer,
        content_signable=content_signable,
    )


# ----------------------------------------------------------------------
# Chain of custody
# ----------------------------------------------------------------------

def test_extractor_other_than_issuer_violates_chain_of_custody():
    document = _document(extractor_url=THIRD_PARTY_URL)

    with pytest.raises(ChainOfCustodyViolation) as exc_info:
        check_chain_of_custody(document, _policy())

    assert exc_info.value.kind == RejectionKind.CHAIN_OF_CUSTODY_VIOLATION
    assert exc_info.value.reason == "extractor should be the issuer"


def test_chain_of_custody_not_required_by_policy():
    document = _document(extractor_url=THIRD_PARTY_URL)

    check_chain_of_custody(document, _policy(extractor_must_be_issuer=False))


def test_chain_of_custody_compares_exact_urls():
    document = _document(extractor_url=ISSUER_URL + "/")

    with pytest.raises(ChainOfCustodyViolation):
        check_chain_of_custody(document, _policy())


# ----------------------------------------------------------------------
# Allow / deny lists
# ----------------------------------------------------------------------

def test_deny_listed_signer_rejects():
    document = _document(validator_urls=[VALIDATOR_URL])
    lists = SignerLists.of(allow=[ISSUER_URL], deny=[VALIDATOR_URL])

    with pytest.raises(SignerDenied):
        evaluate_signer_policy(document, _policy(), lists)


def test_deny_wins_over_allow_for_the_same_signer():
    """
    A signer present in both lists is denied.

    Well-formed configurations keep the lists disjoint; when they are
    not, deny takes precedence.
    """
    document = _document(validator_urls=[VALIDATOR_URL])
    lists = SignerLists.of(allow=[VALIDATOR_URL], deny=[VALIDATOR_URL])

    with pytest.raises(SignerDenied):
        evaluate_signer_policy(document, _policy(content_signable=True), lists)


def test_nothing_to_sign_without_allowed_signers_or_content_signature():
    document = _document(validator_urls=[VALIDATOR_URL])
    lists = SignerLists.of(allow=[THIRD_PARTY_URL])

    with pytest.raises(NothingToSign) as exc_info:
        evaluate_signer_policy(document, _policy(content_signable=False), lists)

    assert exc_info.value.reason == "nothing to be signed"


def test_content_signable_allows_empty_admissible_subset():
    document = _document(validator_urls=[VALIDATOR_URL])
    lists = SignerLists.of()

    result = evaluate_signer_policy(
        document, _policy(content_signable=True), lists
    )

    assert result.is_allowed is False
    assert result.admissible_signers == []
    assert result.signer_set == [ISSUER_URL, VALIDATOR_URL]


def test_admissible_signers_are_allowed_members_in_order():
    document = _document(validator_urls=[VALIDATOR_URL, THIRD_PARTY_URL])
    lists = SignerLists.of(allow=[THIRD_PARTY_URL, ISSUER_URL])

    result = evaluate_signer_policy(document, _policy(), lists)

    assert result.is_allowed is True
    assert result.admissible_signers == [ISSUER_URL, THIRD_PARTY_URL]

