"""
PDF content hashing.

The content hash covers the decoded page content streams, in page
order. It deliberately ignores document structure outside the pages'
drawing instructions (metadata, annotations, signature revisions), so
certifying a PDF does not change its content hash.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterator

import pikepdf
from pikepdf import Array, Name, Stream

from certifier.app.errors import HashingError
from certifier.app.utils.threads import run_in_worker


def _content_streams(page: pikepdf.Page) -> Iterator[Stream]:
    contents = page.obj.get(Name.Contents)
    if contents is None:
        return
    if isinstance(contents, Stream):
        yield contents
    elif isinstance(contents, Array):
        for item in contents:
            if isinstance(item, Stream):
                yield item


def compute_content_hash(pdf_path: Path) -> str:
    """
    Lower-case hex SHA-256 over every page's decoded content streams.

    Raises:
        HashingError: if the file cannot be opened or a stream cannot
            be decoded.
    """
    digest = hashlib.sha256()

    try:
        with pikepdf.open(pdf_path) as pdf:
            for page in pdf.pages:
                for stream in _content_streams(page):
                    digest.update(stream.read_bytes())
    except (pikepdf.PdfError, OSError) as exc:
        raise HashingError(f"PDF content could not be read: {exc}") from exc

    return digest.hexdigest()


class PdfContentHasher:
    async def hash_pdf_content(self, pdf_path: Path) -> str:
        return await run_in_worker(compute_content_hash, Path(pdf_path))
