"""Pydantic models for captured media observations and references.

This module defines the data models used by the capture pipeline: the raw
observation variants emitted by the rendering engine and the injected page
instrumentation, the intermediate candidates produced by the normalizer, and
the canonical MediaReference records retained per session.
"""

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator
from typing_extensions import Annotated


class MediaKind(str, Enum):
    """Coarse media kinds inferred from content-type or URL extension."""
    VIDEO = "video"
    AUDIO = "audio"
    IMAGE = "image"
    OTHER = "other"


class NetworkResponse(BaseModel):
    """Response metadata observed at the network layer."""

    type: Literal["network_response"] = "network_response"
    url: str = Field(description="Response URL as reported by the engine")
    content_type: Optional[str] = Field(
        default=None,
        description="Value of the content-type response header"
    )
    resource_type: Optional[str] = Field(
        default=None,
        description="Engine resource type (document, xhr, media, ...)"
    )
    event: str = Field(
        default="response",
        description="Engine event that produced the observation"
    )
    body_text: Optional[str] = Field(
        default=None,
        description="Decoded body text, only read for XHR JSON responses"
    )


class ConsoleCapture(BaseModel):
    """A fetch/XHR completion reported by the page instrumentation."""

    type: Literal["console_capture"] = "console_capture"
    url: str = Field(description="Resource URL seen by the page hook")
    content_type: Optional[str] = Field(default=None, description="Observed content-type")
    note: Optional[str] = Field(
        default=None,
        description="Originating hook, usually 'fetch' or 'xhr'"
    )


class DomBatch(BaseModel):
    """A batch of src values harvested from media-bearing DOM elements."""

    type: Literal["dom_batch"] = "dom_batch"
    items: List[str] = Field(default_factory=list, description="Harvested src values")
    source: str = Field(default="dom", description="Provenance tag for every item")


class JsonBodyScan(BaseModel):
    """Preview text of a JSON response body forwarded by the page hook."""

    type: Literal["json_body_scan"] = "json_body_scan"
    preview_text: str = Field(description="Leading slice of the JSON body text")
    url: Optional[str] = Field(default=None, description="URL the body was loaded from")


RawObservation = Annotated[
    Union[NetworkResponse, ConsoleCapture, DomBatch, JsonBodyScan],
    Field(discriminator="type"),
]


class MediaCandidate(BaseModel):
    """Pre-deduplication candidate emitted by the capture normalizer."""

    url: str = Field(description="Raw candidate URL")
    source: str = Field(description="Provenance tag")
    content_type: Optional[str] = Field(default=None, description="Observed content-type")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Candidate URL cannot be empty")
        return v


class ProbeResult(BaseModel):
    """Outcome of a best-effort playability probe."""

    url: str
    status_code: Optional[int] = None
    content_type: Optional[str] = None
    content_length: Optional[int] = None
    playable: bool = False
    error: Optional[str] = None


class MediaReference(BaseModel):
    """Canonical, deduplicated record of one discovered media resource.

    Everything except ``playable`` and ``content_type`` is fixed at creation;
    those two fields are filled in at most once by the playability probe.
    """

    canonical_url: str = Field(description="Deduplication key")
    display_url: str = Field(description="Cleaned, human-usable URL")
    kind: MediaKind = Field(description="Coarse media kind")
    source: str = Field(description="Provenance tag (network, xhr, dom, json-preview, ...)")
    content_type: Optional[str] = Field(default=None, description="Content-type, as observed")
    trusted: bool = Field(default=False, description="Hosted on a trusted CDN/platform domain")
    playable: Optional[bool] = Field(
        default=None,
        description="Filled in asynchronously by the relay probe"
    )
    session_id: Optional[str] = Field(default=None, description="Owning session")
    discovered_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the reference was accepted"
    )

    @property
    def url(self) -> str:
        """Alias used by the viewer and the CLI output."""
        return self.display_url

    def apply_probe(self, result: ProbeResult) -> bool:
        """Fill the enrichment fields from a probe result.

        Each field transitions from unset to set at most once.

        Returns:
            True if any field changed
        """
        changed = False
        if self.playable is None:
            self.playable = result.playable
            changed = True
        if self.content_type is None and result.content_type:
            self.content_type = result.content_type
            changed = True
        return changed

    def to_event(self) -> dict:
        """Serialize as a broadcast ``found`` event."""
        return {"type": "found", "item": self.model_dump(mode="json")}
