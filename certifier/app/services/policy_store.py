"""
File-backed trust policy store.

Reads three JSON documents from a single policy directory:

    document_types.json   {"<type>": "<automatic>,<extractorIsIssuer>,<contentSignable>"}
                          or {"<type>": {"automatic": ..., ...}}
    allowlist.json        ["<url>", ...] or {"<name>": "<url>", ...}
    denylist.json         same shape as allowlist.json

Files are re-read on every call, so edits take effect for the next run
without a restart. A run works on the snapshot it resolved.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional

from pydantic import ValidationError

from certifier.app.errors import PolicyStoreError
from certifier.app.schemas.policy import DocumentTypePolicy, SignerLists
from certifier.app.utils.threads import run_in_worker

logger = logging.getLogger(__name__)


CONFIGURATION_FILES: Dict[str, str] = {
    "document": "document_types.json",
    "allowlist": "allowlist.json",
    "denylist": "denylist.json",
}


def configuration_file(kind: str) -> Optional[str]:
    """File name holding the given configuration kind, or None."""
    return CONFIGURATION_FILES.get(kind)


class FilePolicyStore:
    def __init__(self, policy_dir: Path) -> None:
        self._policy_dir = Path(policy_dir)

    def configuration_path(self, kind: str) -> Optional[Path]:
        file_name = configuration_file(kind)
        if file_name is None:
            return None
        return self._policy_dir / file_name

    # ------------------------------------------------------------------
    # PolicyStore
    # ------------------------------------------------------------------

    async def resolve_policy(
        self, document_type: str
    ) -> Optional[DocumentTypePolicy]:
        entries = await run_in_worker(
            self._load, CONFIGURATION_FILES["document"], True
        )
        if not isinstance(entries, dict):
            raise PolicyStoreError(
                "document_types.json must hold a JSON object"
            )

        value = entries.get(document_type)
        if value is None:
            logger.info(
                "document_type_unknown",
                extra={"document_type": document_type},
            )
            return None

        try:
            if isinstance(value, str):
                return DocumentTypePolicy.from_config_value(value)
            if isinstance(value, dict):
                return DocumentTypePolicy(
                    automatic=value.get("automatic"),
                    extractor_must_be_issuer=value.get("extractorIsIssuer"),
                    content_signable=value.get("contentSignable"),
                )
        except (ValueError, ValidationError) as exc:
            raise PolicyStoreError(
                f"Invalid policy for document type '{document_type}': {exc}"
            ) from exc

        raise PolicyStoreError(
            f"Invalid policy for document type '{document_type}': "
            f"unsupported value type {type(value).__name__}"
        )

    async def resolve_lists(self) -> SignerLists:
        allow = await run_in_worker(
            self._load, CONFIGURATION_FILES["allowlist"], False
        )
        deny = await run_in_worker(
            self._load, CONFIGURATION_FILES["denylist"], False
        )
        return SignerLists(
            allow=self._urls(allow, "allowlist"),
            deny=self._urls(deny, "denylist"),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load(self, file_name: str, required: bool) -> Any:
        path = self._policy_dir / file_name

        if not path.exists():
            if required:
                raise PolicyStoreError(f"Policy file not found: {path}")
            return []

        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise PolicyStoreError(
                f"Policy file could not be read: {path}: {exc}"
            ) from exc

    @staticmethod
    def _urls(raw: Any, kind: str) -> FrozenSet[str]:
        if isinstance(raw, dict):
            values = list(raw.values())
        elif isinstance(raw, list):
            values = raw
        else:
            raise PolicyStoreError(
                f"{kind} must be a JSON array or object of URLs"
            )

        if not all(isinstance(v, str) and v for v in values):
            raise PolicyStoreError(f"{kind} entries must be non-empty strings")

        return frozenset(values)
