import io
import re
from pathlib import Path
from typing import Sequence

import pikepdf
from pikepdf import Array, Name


# ------------------------------------------------------------------
# Rendered PDF (pages with real content streams)
#
# Used as the human-readable rendering of an identity document. The
# content hash computed by PdfContentHasher depends only on the page
# content streams, so two calls with the same text hash identically.
# ------------------------------------------------------------------

def _content_stream(text: str) -> bytes:
    escaped = text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
    return f"BT /F1 12 Tf 72 720 Td ({escaped}) Tj ET".encode("latin-1")


def rendered_pdf(*pages: str) -> bytes:
    buffer = io.BytesIO()
    with pikepdf.new() as pdf:
        for text in pages or ("Identity document",):
            pdf.add_blank_page(page_size=(595, 842))
            pdf.pages[-1].obj[Name.Contents] = pdf.make_stream(
                _content_stream(text)
            )
        pdf.save(buffer)
    return buffer.getvalue()


# ------------------------------------------------------------------
# Rendered PDF with split content streams
#
# Same drawing instructions as rendered_pdf() for a single page, but
# stored as an array of two streams.
# ------------------------------------------------------------------

def split_stream_pdf(first: str, second: str) -> bytes:
    buffer = io.BytesIO()
    with pikepdf.new() as pdf:
        pdf.add_blank_page(page_size=(595, 842))
        pdf.pages[-1].obj[Name.Contents] = Array(
            [
                pdf.make_stream(_content_stream(first)),
                pdf.make_stream(_content_stream(second)),
            ]
        )
        pdf.save(buffer)
    return buffer.getvalue()


def minimal_valid_pdf() -> bytes:
    """Structurally valid PDF without pages."""
    buffer = io.BytesIO()
    with pikepdf.new() as pdf:
        pdf.save(buffer)
    return buffer.getvalue()


def write_pdf(directory: Path, name: str, data: bytes) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_bytes(data)
    return path


def content_streams_of(pdf_bytes: bytes) -> Sequence[bytes]:
    with pikepdf.open(io.BytesIO(pdf_bytes)) as pdf:
        return [
            page.obj[Name.Contents].read_bytes()
            for page in pdf.pages
        ]


# ------------------------------------------------------------------
# Tampered signature
#
# Overwrites the hex CMS blob of every embedded signature with zeros.
# Byte offsets are preserved, so the file still parses.
# ------------------------------------------------------------------

_SIGNATURE_CONTENTS = re.compile(rb"(/Contents\s*<)([0-9A-Fa-f]+)(>)")


def zero_signature_contents(pdf_bytes: bytes) -> bytes:
    tampered, count = _SIGNATURE_CONTENTS.subn(
        lambda m: m.group(1) + b"0" * len(m.group(2)) + m.group(3), pdf_bytes
    )
    if not count:
        raise ValueError("PDF carries no signature contents")
    return tampered
