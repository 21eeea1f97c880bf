"""Utility modules shared across the capture pipeline."""

from .url_canonicalizer import (
    CanonicalURL,
    URLCanonicalizer,
    URLCanonicalizationError,
    canonicalize,
    is_capturable,
    is_passthrough,
)

__all__ = [
    "CanonicalURL",
    "URLCanonicalizer",
    "URLCanonicalizationError",
    "canonicalize",
    "is_capturable",
    "is_passthrough",
]
