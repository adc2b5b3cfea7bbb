"""
Filesystem store for documents awaiting manual review.

Layout:

    <root>/<document_type>/<review_id>/v<version>.json
    <root>/<document_type>/<review_id>/v<version>.metadata.json

Both files are created exclusively: an existing review version is never
overwritten. A version is stored completely or not at all.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List

from certifier.app.errors import StorageError
from certifier.app.utils.threads import run_in_worker

logger = logging.getLogger(__name__)

# Path components derived from caller input must not escape the root
_SAFE_COMPONENT = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def _remove(paths: List[Path]) -> None:
    for path in paths:
        path.unlink(missing_ok=True)


class FilesystemReviewStore:
    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    async def store_for_manual_review(
        self,
        raw: bytes,
        metadata: Dict[str, Any],
        document_type: str,
        review_id: str,
        version: int,
    ) -> None:
        await run_in_worker(
            self._write,
            raw,
            metadata,
            document_type,
            review_id,
            version,
            on_abandon=_remove,
        )

        logger.info(
            "review_document_stored",
            extra={"document_type": document_type, "review_id": review_id},
        )

    def review_dir(self, document_type: str, review_id: str) -> Path:
        for component in (document_type, review_id):
            if not _SAFE_COMPONENT.match(component) or component in {".", ".."}:
                raise StorageError(f"Unsafe storage path component: {component!r}")
        return self._root / document_type / review_id

    def _write(
        self,
        raw: bytes,
        metadata: Dict[str, Any],
        document_type: str,
        review_id: str,
        version: int,
    ) -> List[Path]:
        target_dir = self.review_dir(document_type, review_id)
        document_path = target_dir / f"v{version}.json"
        metadata_path = target_dir / f"v{version}.metadata.json"
        written: List[Path] = []

        try:
            target_dir.mkdir(parents=True, exist_ok=True)

            with document_path.open("xb") as fh:
                written.append(document_path)
                fh.write(raw)

            with metadata_path.open("xb") as fh:
                written.append(metadata_path)
                fh.write(
                    json.dumps(metadata, ensure_ascii=False, indent=2).encode(
                        "utf-8"
                    )
                )
        except FileExistsError as exc:
            _remove(written)
            raise StorageError(
                f"Review {review_id} version {version} already exists"
            ) from exc
        except OSError as exc:
            _remove(written)
            raise StorageError(
                f"Review {review_id} could not be written: {exc}"
            ) from exc

        return written
