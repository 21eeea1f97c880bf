"""Deduplicating result store for one capture session.

The store holds at most one MediaReference per canonical URL. Entries on
trusted/priority domains are kept ahead of the rest; within each partition
entries stay in the order they were accepted.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple

from ..capture.classifier import classify
from ..models.media import MediaCandidate, MediaKind, MediaReference, ProbeResult
from ..utils.url_canonicalizer import URLCanonicalizer, is_capturable

logger = logging.getLogger(__name__)


class ResultStore:
    """Ordered, deduplicated collection of media references."""

    def __init__(
        self,
        canonicalizer: Optional[URLCanonicalizer] = None,
        classifier: Callable[[Optional[str], str], MediaKind] = classify,
        session_id: Optional[str] = None,
    ):
        """Initialize result store.

        Args:
            canonicalizer: URL canonicalizer providing dedup keys
            classifier: Media kind classifier
            session_id: Owning session, stamped on every entry
        """
        self.canonicalizer = canonicalizer or URLCanonicalizer()
        self.classifier = classifier
        self.session_id = session_id
        self._entries: List[MediaReference] = []
        self._index: Dict[str, MediaReference] = {}
        self._lock = threading.RLock()
        self.duplicates_rejected = 0

    def accept(self, candidate: MediaCandidate) -> Tuple[bool, Optional[MediaReference]]:
        """Insert a candidate unless its canonical URL is already stored.

        Args:
            candidate: Normalized candidate

        Returns:
            (accepted, entry): the new entry when accepted, the existing entry
            for a duplicate, or None for an uncapturable URL
        """
        canonical_url, display_url, trusted = self.canonicalizer.canonicalize(candidate.url)
        if not is_capturable(canonical_url):
            logger.debug(f"Rejecting non-absolute candidate URL: {candidate.url[:200]}")
            return False, None

        with self._lock:
            existing = self._index.get(canonical_url)
            if existing is not None:
                self.duplicates_rejected += 1
                return False, existing

            entry = MediaReference(
                canonical_url=canonical_url,
                display_url=display_url,
                kind=self.classifier(candidate.content_type, canonical_url),
                source=candidate.source,
                content_type=candidate.content_type,
                trusted=trusted,
                session_id=self.session_id,
            )
            self._index[canonical_url] = entry
            self._entries.append(entry)
            self._entries = self._partition(self._entries)

        logger.debug(f"Accepted {entry.kind.value} reference from {entry.source}: {canonical_url[:200]}")
        return True, entry

    @staticmethod
    def _partition(entries: List[MediaReference]) -> List[MediaReference]:
        """Stable partition: trusted entries first, insertion order within each part."""
        return [e for e in entries if e.trusted] + [e for e in entries if not e.trusted]

    def all(self) -> List[MediaReference]:
        """Snapshot of the entries in store order."""
        with self._lock:
            return list(self._entries)

    def get(self, canonical_url: str) -> Optional[MediaReference]:
        """Look up an entry by canonical URL."""
        with self._lock:
            return self._index.get(canonical_url)

    def apply_probe(self, canonical_url: str, result: ProbeResult) -> bool:
        """Fill an entry's enrichment fields from a probe result.

        Returns:
            True if the entry exists and changed
        """
        with self._lock:
            entry = self._index.get(canonical_url)
            if entry is None:
                return False
            return entry.apply_probe(result)

    def counts_by_kind(self) -> Dict[str, int]:
        """Entry counts keyed by media kind."""
        counts = {kind.value: 0 for kind in MediaKind}
        with self._lock:
            for entry in self._entries:
                counts[entry.kind.value] += 1
        return counts

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, canonical_url: str) -> bool:
        with self._lock:
            return canonical_url in self._index

    def __repr__(self) -> str:
        return f"ResultStore(entries={len(self)}, duplicates_rejected={self.duplicates_rejected})"
