"""Unit tests for the deduplicating result store."""

import threading

import pytest

from mediacap.models.media import MediaKind, ProbeResult
from mediacap.sessions.store import ResultStore


class TestResultStore:
    """Tests for ResultStore."""

    def test_accept_new_entry(self, store, make_candidate):
        """Test a new candidate becomes a full reference."""
        accepted, entry = store.accept(make_candidate("https://cdn.example.com/v.mp4", content_type="video/mp4"))

        assert accepted is True
        assert entry.canonical_url == "https://cdn.example.com/v.mp4"
        assert entry.kind == MediaKind.VIDEO
        assert entry.source == "network-response"
        assert entry.session_id == "test-session"
        assert entry.playable is None
        assert len(store) == 1

    def test_byte_range_variants_deduplicated(self, store, make_candidate):
        """Test range/tracking variants of one file collapse to one entry."""
        first = store.accept(make_candidate(
            "https://cdn.example.com/v.mp4?bytestart=0&byteend=100&utm_source=x", source="network-ext"
        ))
        second = store.accept(make_candidate("https://cdn.example.com/v.mp4", source="dom"))

        assert first[0] is True
        assert second == (False, first[1])
        assert [e.canonical_url for e in store.all()] == ["https://cdn.example.com/v.mp4"]
        assert store.all()[0].kind == MediaKind.VIDEO
        assert store.duplicates_rejected == 1

    def test_idempotent_acceptance(self, store, make_candidate):
        """Test any number of arrivals of one canonical URL store one entry."""
        variants = [
            "https://img.example.com/a.jpg",
            "https://IMG.example.com:443/a.jpg#x",
            "//img.example.com/a.jpg?utm_campaign=y",
            "https://img.example.com/a.jpg?fbclid=1",
        ]
        results = [store.accept(make_candidate(url, source="dom")) for url in variants * 3]

        assert sum(1 for accepted, _ in results if accepted) == 1
        assert len(store) == 1
        assert "https://img.example.com/a.jpg" in store

    def test_first_observation_wins(self, store, make_candidate):
        """Test that a duplicate never overwrites the stored entry."""
        store.accept(make_candidate("https://cdn.example.com/a.webm", source="network-response", content_type="video/webm"))
        store.accept(make_candidate("https://cdn.example.com/a.webm", source="dom"))

        entry = store.get("https://cdn.example.com/a.webm")
        assert entry.source == "network-response"
        assert entry.content_type == "video/webm"

    def test_priority_ordering(self, store, make_candidate):
        """Test trusted entries come first, insertion order within each part."""
        a = store.accept(make_candidate("https://media.example.com/a.mp4"))[1]
        b = store.accept(make_candidate("https://video.twimg.com/b.mp4"))[1]
        c = store.accept(make_candidate("https://media.example.com/c.mp4"))[1]

        assert b.trusted is True
        assert [e.canonical_url for e in store.all()] == [b.canonical_url, a.canonical_url, c.canonical_url]

    def test_ties_keep_first_seen_order(self, store, make_candidate):
        """Test that later trusted entries go after earlier trusted ones."""
        urls = [
            "https://a.example.com/1.jpg",
            "https://scontent.cdninstagram.com/2.jpg",
            "https://b.example.com/3.jpg",
            "https://pbs.twimg.com/4.jpg",
        ]
        for url in urls:
            store.accept(make_candidate(url))

        assert [e.canonical_url for e in store.all()] == [urls[1], urls[3], urls[0], urls[2]]

    def test_relative_urls_rejected(self, store, make_candidate):
        """Test that non-absolute candidates are not stored."""
        assert store.accept(make_candidate("/media/v.mp4")) == (False, None)
        assert len(store) == 0

    def test_data_urls_accepted(self, store, make_candidate):
        """Test that data: URLs are stored verbatim."""
        accepted, entry = store.accept(make_candidate("data:image/png;base64,iVBORw0KGgo=", source="dom"))
        assert accepted is True
        assert entry.kind == MediaKind.IMAGE
        assert entry.canonical_url == "data:image/png;base64,iVBORw0KGgo="

    def test_duplicate_dom_batch(self, store, make_candidate):
        """Test a DOM batch repeating one image yields one image entry."""
        for url in ["https://img.example.com/a.jpg", "https://img.example.com/a.jpg"]:
            store.accept(make_candidate(url, source="dom"))

        entries = store.all()
        assert len(entries) == 1
        assert entries[0].kind == MediaKind.IMAGE

    def test_apply_probe_sets_fields_once(self, store, make_candidate):
        """Test probe enrichment is a one-time transition."""
        store.accept(make_candidate("https://cdn.example.com/v"))

        changed = store.apply_probe(
            "https://cdn.example.com/v",
            ProbeResult(url="https://cdn.example.com/v", status_code=200, content_type="video/mp4", playable=True),
        )
        again = store.apply_probe(
            "https://cdn.example.com/v",
            ProbeResult(url="https://cdn.example.com/v", status_code=404, content_type="text/html", playable=False),
        )

        entry = store.get("https://cdn.example.com/v")
        assert changed is True
        assert again is False
        assert entry.playable is True
        assert entry.content_type == "video/mp4"
        assert store.apply_probe("https://cdn.example.com/missing", ProbeResult(url="x")) is False

    def test_counts_by_kind(self, store, make_candidate):
        store.accept(make_candidate("https://cdn.example.com/a.mp4"))
        store.accept(make_candidate("https://cdn.example.com/b.mp3"))
        store.accept(make_candidate("https://cdn.example.com/c.png"))
        store.accept(make_candidate("https://cdn.example.com/d.png"))

        assert store.counts_by_kind() == {"video": 1, "audio": 1, "image": 2, "other": 0}

    def test_concurrent_accepts_keep_one_entry_per_url(self, canonicalizer, make_candidate):
        """Test the dedup invariant under concurrent writers."""
        store = ResultStore(canonicalizer)
        urls = [f"https://cdn.example.com/clip{i}.mp4" for i in range(50)]
        accepted = []
        lock = threading.Lock()

        def writer():
            for url in urls:
                ok, _ = store.accept(make_candidate(url + "?utm_source=t"))
                if ok:
                    with lock:
                        accepted.append(url)

        threads = [threading.Thread(target=writer) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(store) == 50
        assert sorted(accepted) == sorted(urls)
        assert len({e.canonical_url for e in store.all()}) == 50
