"""
PDF rendering retrieval.

Materializes the PDF referenced by a document into the run's working
directory. Supported references:

- http(s)://...  downloaded with the shared httpx client
- file://...     copied from the local filesystem
- plain path     copied from the local filesystem

The retrieved file is checked for size and PDF header, never parsed.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from urllib.parse import ParseResult, unquote, urlparse

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from certifier.app.errors import RetrievalError
from certifier.app.utils.threads import run_in_worker

logger = logging.getLogger(__name__)

PDF_HEADER = b"%PDF-"
RETRIEVED_FILE_NAME = "extracted_temp.pdf"


class HttpPdfRetriever:
    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        max_bytes: int,
    ) -> None:
        self.client = http_client
        self.max_bytes = max_bytes

    async def fetch_pdf(self, source_ref: str, work_dir: Path) -> Path:
        target = Path(work_dir) / RETRIEVED_FILE_NAME
        parsed = self._parse_source(source_ref)
        scheme = parsed.scheme.lower()

        if scheme in ("http", "https"):
            try:
                data = await self._download(source_ref)
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                raise RetrievalError(
                    f"PDF download failed ({source_ref}): {exc}"
                ) from exc
            self._check(data, source_ref)
            await run_in_worker(target.write_bytes, data)
        else:
            local = self._local_path(parsed, source_ref)
            await run_in_worker(self._copy, local, target)

        logger.info("pdf_retrieved", extra={"source": source_ref})
        return target

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _download(self, url: str) -> bytes:
        response = await self.client.get(url, follow_redirects=True)

        if response.status_code != 200:
            raise RetrievalError(
                f"PDF source returned status {response.status_code} ({url})"
            )

        return response.content

    @staticmethod
    def _parse_source(source_ref: str) -> ParseResult:
        try:
            return urlparse(source_ref)
        except ValueError as exc:
            raise RetrievalError(
                f"Malformed PDF source ({source_ref!r}): {exc}"
            ) from exc

    @staticmethod
    def _local_path(parsed: ParseResult, source_ref: str) -> Path:
        if parsed.scheme == "file":
            return Path(unquote(parsed.path))
        if parsed.scheme and len(parsed.scheme) > 1:
            raise RetrievalError(
                f"Unsupported PDF source scheme '{parsed.scheme}'"
            )
        return Path(source_ref)

    def _copy(self, source: Path, target: Path) -> None:
        try:
            size = source.stat().st_size
        except OSError as exc:
            raise RetrievalError(f"PDF source not readable: {source}: {exc}") from exc

        if size > self.max_bytes:
            raise RetrievalError(
                f"PDF exceeds size limit ({size} > {self.max_bytes} bytes)"
            )

        try:
            with source.open("rb") as fh:
                header = fh.read(len(PDF_HEADER))
            self._check_header(header, str(source))
            shutil.copyfile(source, target)
        except OSError as exc:
            raise RetrievalError(f"PDF could not be copied: {exc}") from exc

    def _check(self, data: bytes, source_ref: str) -> None:
        if len(data) > self.max_bytes:
            raise RetrievalError(
                f"PDF exceeds size limit ({len(data)} > {self.max_bytes} bytes)"
            )
        self._check_header(data, source_ref)

    @staticmethod
    def _check_header(data: bytes, source_ref: str) -> None:
        if not data.startswith(PDF_HEADER):
            raise RetrievalError(f"Source is not a PDF ({source_ref})")
