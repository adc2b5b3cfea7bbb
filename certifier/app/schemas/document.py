"""
Identity document schema.

Typed, immutable view of the machine-readable JSON record. The wire
format uses camelCase keys; fields are exposed in snake_case and
populated through aliases.

Only the parts the authorization engine reads are modelled strictly.
Free-form sections (content, additional metadata) are kept as-is.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


_WIRE = ConfigDict(
    frozen=True,
    populate_by_name=True,
    extra="ignore",
)


class Signature(BaseModel):
    """
    Signer identity plus opaque signature payload.

    Policy comparisons use `url` only.
    """

    url: str = Field(..., min_length=1)
    payload: Optional[str] = None

    model_config = _WIRE


class Issuer(BaseModel):
    name: Optional[str] = None
    url: str = Field(..., min_length=1)

    model_config = _WIRE


class MetaData(BaseModel):
    document_type: str = Field(..., alias="documentType", min_length=1)
    document_id: Optional[str] = Field(None, alias="documentId")
    issuer: Issuer
    pdf_hash: Optional[str] = Field(
        None,
        alias="pdfHash",
        description="Content hash of the PDF rendering declared by the JSON",
    )

    model_config = _WIRE


class Extractor(BaseModel):
    signature: Signature

    model_config = _WIRE


class Validator(BaseModel):
    signature: Signature
    signed_signatures: List[str] = Field(
        default_factory=list, alias="signedSignatures"
    )
    is_content_signed: Optional[bool] = Field(None, alias="isContentSigned")
    content_signature: Optional[str] = Field(None, alias="contentSignature")

    model_config = _WIRE


class Document(BaseModel):
    """
    Parsed identity document.

    Immutable for the duration of one authorization run.
    """

    meta_data: MetaData = Field(..., alias="metaData")
    content: Dict[str, Any] = Field(default_factory=dict)
    extractor: Extractor
    validators: List[Validator] = Field(default_factory=list)

    model_config = _WIRE

    @classmethod
    def from_json(cls, raw_json: str | bytes) -> "Document":
        """
        Parse the wire form.

        Raises:
            pydantic.ValidationError: on malformed JSON or missing fields.
        """
        return cls.model_validate_json(raw_json)

    @property
    def document_type(self) -> str:
        return self.meta_data.document_type
