"""
Trust policy schema.

DocumentTypePolicy is resolved per document type, SignerLists globally.
Both are read-only snapshots for the duration of a run.
"""

from __future__ import annotations

from typing import FrozenSet, Iterable

from pydantic import BaseModel, ConfigDict, Field


_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


def _parse_flag(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"Invalid policy flag '{raw}'")


class DocumentTypePolicy(BaseModel):
    """
    Per document type processing policy.
    """

    automatic: bool = Field(
        ...,
        description="Process without manual review",
    )
    extractor_must_be_issuer: bool = Field(
        ...,
        description="The extractor's signer URL must equal the issuer URL",
    )
    content_signable: bool = Field(
        ...,
        description="The JSON body may carry an independent content signature",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def from_config_value(cls, value: str) -> "DocumentTypePolicy":
        """
        Parse the legacy delimited form:

            "<automatic>,<extractorIsIssuer>,<contentSignable>"

        Raises:
            ValueError: if the value does not hold exactly three flags.
        """
        parts = value.split(",")
        if len(parts) != 3:
            raise ValueError(
                "Document policy must hold exactly three comma-separated "
                f"flags, got {value!r}"
            )
        automatic, extractor_is_issuer, content_signable = (
            _parse_flag(p) for p in parts
        )
        return cls(
            automatic=automatic,
            extractor_must_be_issuer=extractor_is_issuer,
            content_signable=content_signable,
        )


class SignerLists(BaseModel):
    """
    Global allow and deny sets of signer URLs.

    A well-formed configuration keeps them disjoint, but consumers must
    not rely on it: deny membership takes precedence.
    """

    allow: FrozenSet[str] = Field(default_factory=frozenset)
    deny: FrozenSet[str] = Field(default_factory=frozenset)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def of(
        cls,
        *,
        allow: Iterable[str] = (),
        deny: Iterable[str] = (),
    ) -> "SignerLists":
        return cls(allow=frozenset(allow), deny=frozenset(deny))
