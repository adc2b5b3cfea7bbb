import io
import threading

import anyio
import pytest
from pyhanko.pdf_utils.reader import PdfFileReader

from certifier.app.errors import SigningError
from certifier.app.services.pdf_certifier import (
    PyHankoPdfCertifier,
    signature_field_name,
    signed_output_path,
)
from certifier.app.services.pdf_hashing import PdfContentHasher
from certifier.tests.fixtures.credentials import make_credentials
from certifier.tests.fixtures.documents import CERTIFIER_URL, THIRD_PARTY_URL
from certifier.tests.fixtures.pdf_factory import (
    rendered_pdf,
    write_pdf,
    zero_signature_contents,
)

pytestmark = pytest.mark.anyio

PASSWORD = "test-password"


@pytest.fixture
def signing_p12(tmp_path):
    credentials = make_credentials(CERTIFIER_URL)
    return credentials.write_p12(tmp_path / "signer.p12", PASSWORD)


def test_output_naming():
    assert signature_field_name("abc") == "Certification-abc"


def test_signed_output_is_a_sibling_file(tmp_path):
    assert (
        signed_output_path(tmp_path / "extracted_temp.pdf", "abc")
        == tmp_path / "signed_abc.pdf"
    )


async def test_unsigned_pdf_has_nothing_to_invalidate(tmp_path, signing_p12):
    path = write_pdf(tmp_path, "doc.pdf", rendered_pdf("Jane Doe"))
    certifier = PyHankoPdfCertifier(p12_path=signing_p12, password=PASSWORD)

    assert await certifier.verify_signatures(path) is True


async def test_signing_leaves_the_input_untouched(tmp_path, signing_p12):
    original = rendered_pdf("Jane Doe")
    path = write_pdf(tmp_path, "doc.pdf", original)
    certifier = PyHankoPdfCertifier(p12_path=signing_p12, password=PASSWORD)

    signed = await certifier.sign_pdf(path, "sig-1")

    assert signed == tmp_path / "signed_sig-1.pdf"
    assert path.read_bytes() == original
    assert signed.read_bytes().startswith(original)
    assert [
        sig.field_name
        for sig in PdfFileReader(io.BytesIO(signed.read_bytes())).embedded_signatures
    ] == ["Certification-sig-1"]


async def test_signed_output_verifies_and_keeps_its_content_hash(
    tmp_path, signing_p12
):
    path = write_pdf(tmp_path, "doc.pdf", rendered_pdf("Jane Doe"))
    certifier = PyHankoPdfCertifier(p12_path=signing_p12, password=PASSWORD)
    hasher = PdfContentHasher()

    signed = await certifier.sign_pdf(path, "sig-1")

    assert await certifier.verify_signatures(signed) is True
    assert await hasher.hash_pdf_content(signed) == await hasher.hash_pdf_content(
        path
    )


async def test_signature_from_an_untrusted_root_fails_verification(
    tmp_path, signing_p12
):
    other_root = make_credentials(THIRD_PARTY_URL).write_certificate(
        tmp_path / "root.pem"
    )
    path = write_pdf(tmp_path, "doc.pdf", rendered_pdf("Jane Doe"))

    signed = await PyHankoPdfCertifier(
        p12_path=signing_p12, password=PASSWORD
    ).sign_pdf(path, "sig-1")

    strict = PyHankoPdfCertifier(
        p12_path=signing_p12,
        password=PASSWORD,
        trust_root_path=other_root,
    )

    assert await strict.verify_signatures(signed) is False


async def test_wrong_key_password_leaves_no_partial_output(tmp_path, signing_p12):
    path = write_pdf(tmp_path, "doc.pdf", rendered_pdf("Jane Doe"))
    certifier = PyHankoPdfCertifier(p12_path=signing_p12, password="wrong")

    with pytest.raises(SigningError):
        await certifier.sign_pdf(path, "sig-1")

    assert not (tmp_path / "signed_sig-1.pdf").exists()


async def test_existing_output_is_never_overwritten(tmp_path, signing_p12):
    path = write_pdf(tmp_path, "doc.pdf", rendered_pdf("Jane Doe"))
    existing = tmp_path / "signed_sig-1.pdf"
    existing.write_bytes(b"keep me")
    certifier = PyHankoPdfCertifier(p12_path=signing_p12, password=PASSWORD)

    with pytest.raises(SigningError):
        await certifier.sign_pdf(path, "sig-1")

    assert existing.read_bytes() == b"keep me"


async def test_zeroed_signature_contents_fail_verification(tmp_path, signing_p12):
    path = write_pdf(tmp_path, "doc.pdf", rendered_pdf("Jane Doe"))
    certifier = PyHankoPdfCertifier(p12_path=signing_p12, password=PASSWORD)
    signed = await certifier.sign_pdf(path, "sig-1")

    tampered = write_pdf(
        tmp_path, "tampered.pdf", zero_signature_contents(signed.read_bytes())
    )

    assert await certifier.verify_signatures(tampered) is False


class _HeldCertifier(PyHankoPdfCertifier):
    """Signs only once released, to outlive a caller's timeout."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.release = threading.Event()
        self.signed = threading.Event()

    def _sign(self, input_pdf, output_pdf, signature_id):
        self.release.wait(5)
        try:
            return super()._sign(input_pdf, output_pdf, signature_id)
        finally:
            self.signed.set()


async def test_abandoned_signing_removes_its_output(tmp_path, signing_p12):
    path = write_pdf(tmp_path, "doc.pdf", rendered_pdf("Jane Doe"))
    certifier = _HeldCertifier(p12_path=signing_p12, password=PASSWORD)

    with pytest.raises(TimeoutError):
        with anyio.fail_after(0.05):
            await certifier.sign_pdf(path, "sig-1")

    certifier.release.set()
    assert await anyio.to_thread.run_sync(certifier.signed.wait, 5)

    output = tmp_path / "signed_sig-1.pdf"
    for _ in range(200):
        if not output.exists():
            break
        await anyio.sleep(0.01)

    assert not output.exists()
