"""Capture normalizer mapping raw observations to media candidates.

Each raw observation variant (network response, console-reported hook
completion, DOM batch, JSON body preview) is turned into zero or more
MediaCandidate records. Canonicalization and classification happen later,
in the result store. A malformed observation yields no candidates and
never raises.
"""

import logging
import re
from typing import List, Optional

from pydantic import ValidationError

from .classifier import is_media_content_type
from ..models.media import (
    ConsoleCapture,
    DomBatch,
    JsonBodyScan,
    MediaCandidate,
    NetworkResponse,
    RawObservation,
)

logger = logging.getLogger(__name__)

MEDIA_EXT_RE = re.compile(
    r'\.(mp4|webm|m3u8|mkv|mp3|aac|ogg|opus|wav|flac|m4a|jpg|jpeg|png|gif|bmp|webp)(\?|#|$)',
    re.IGNORECASE
)

# Absolute media URLs embedded in free text (JSON bodies)
EMBEDDED_MEDIA_URL_RE = re.compile(
    r'https?://[^\s"\'<>\\]+?'
    r'\.(?:mp4|webm|m3u8|mkv|mp3|aac|ogg|opus|wav|flac|m4a|jpe?g|png|gif|bmp|webp)'
    r'(?!\w)(?:\?[^\s"\'<>\\]*)?',
    re.IGNORECASE
)

# JSON encoders write '/', '&', '=' and '?' as \/ or \u00XX escapes
_JSON_ESCAPE_RE = re.compile(r'\\(?:/|u00(2[fF]|26|3[dDfF]))')


def _unescape_json_char(match) -> str:
    code = match.group(1)
    return chr(int(code, 16)) if code else '/'


def extract_media_urls(text: Optional[str]) -> List[str]:
    """Find absolute media URLs embedded in text, first-seen order, no repeats.

    Args:
        text: Free text, typically a JSON response body

    Returns:
        Distinct URLs in order of appearance
    """
    if not text:
        return []

    text = _JSON_ESCAPE_RE.sub(_unescape_json_char, text)

    seen = set()
    urls = []
    for match in EMBEDDED_MEDIA_URL_RE.findall(text):
        if match not in seen:
            seen.add(match)
            urls.append(match)
    return urls


class CaptureNormalizer:
    """Maps raw observations to media candidates."""

    def __init__(self, json_body_limit: int = 200000):
        """Initialize normalizer.

        Args:
            json_body_limit: Maximum characters of a JSON body scanned for URLs
        """
        self.json_body_limit = json_body_limit
        self.stats = {
            'observations': 0,
            'candidates': 0,
            'discarded': 0,
        }

    def normalize(self, observation: RawObservation) -> List[MediaCandidate]:
        """Turn one raw observation into zero or more candidates.

        Args:
            observation: Raw observation of any variant

        Returns:
            Candidate list; empty for non-media or malformed observations
        """
        self.stats['observations'] += 1
        try:
            if isinstance(observation, NetworkResponse):
                candidates = self._from_network(observation)
            elif isinstance(observation, ConsoleCapture):
                candidates = self._from_console(observation)
            elif isinstance(observation, DomBatch):
                candidates = self._from_dom(observation)
            elif isinstance(observation, JsonBodyScan):
                candidates = self._from_text(observation.preview_text, "json-preview")
            else:
                logger.debug(f"Unknown observation type: {type(observation).__name__}")
                candidates = []
        except (ValidationError, ValueError, TypeError, AttributeError) as e:
            logger.debug(f"Discarding malformed observation: {e}")
            self.stats['discarded'] += 1
            return []

        self.stats['candidates'] += len(candidates)
        return candidates

    def _from_network(self, observation: NetworkResponse) -> List[MediaCandidate]:
        url = observation.url
        content_type = observation.content_type or None

        if observation.event == "requestfinished":
            if MEDIA_EXT_RE.search(url):
                return [MediaCandidate(url=url, source="requestfinished", content_type=content_type)]
            return []

        if is_media_content_type(content_type):
            return [MediaCandidate(url=url, source="network-response", content_type=content_type)]

        if MEDIA_EXT_RE.search(url):
            return [MediaCandidate(url=url, source="network-ext")]

        if (
            (observation.resource_type or "").lower() == "xhr"
            and "application/json" in (content_type or "").lower()
            and observation.body_text
        ):
            return self._from_text(observation.body_text, "xhr-json")

        return []

    def _from_console(self, observation: ConsoleCapture) -> List[MediaCandidate]:
        return [
            MediaCandidate(
                url=observation.url,
                source=observation.note or "console",
                content_type=observation.content_type or None,
            )
        ]

    def _from_dom(self, observation: DomBatch) -> List[MediaCandidate]:
        seen = set()
        candidates = []
        for item in observation.items:
            item = item.strip() if isinstance(item, str) else ""
            if not item or item in seen:
                continue
            seen.add(item)
            candidates.append(MediaCandidate(url=item, source=observation.source or "dom"))
        return candidates

    def _from_text(self, text: str, source: str) -> List[MediaCandidate]:
        text = (text or "")[:self.json_body_limit]
        return [MediaCandidate(url=u, source=source) for u in extract_media_urls(text)]
