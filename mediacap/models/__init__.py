"""Data models for the capture pipeline."""

from .media import (
    MediaKind,
    NetworkResponse,
    ConsoleCapture,
    DomBatch,
    JsonBodyScan,
    RawObservation,
    MediaCandidate,
    MediaReference,
    ProbeResult,
)

__all__ = [
    "MediaKind",
    "NetworkResponse",
    "ConsoleCapture",
    "DomBatch",
    "JsonBodyScan",
    "RawObservation",
    "MediaCandidate",
    "MediaReference",
    "ProbeResult",
]
