"""Test configuration and fixtures"""

import threading

import pytest

from spot_audit.catalog.base import (
    LIKED_LIBRARY,
    CatalogService,
    CollectionPage,
    ContinuationToken,
)
from spot_audit.catalog.models import Track
from spot_audit.core.config import AuditSettings, RetrySettings
from spot_audit.core.exceptions import PermanentCatalogError, TransientCatalogError
from spot_audit.core.retry import RetryPolicy


def make_track(track_id, markets=("US",), isrc=None, name=None, artist="Test Artist", relinked_id=None):
    """Build a Track with sensible defaults. markets=None means no availability data."""
    return Track(
        track_id=track_id,
        name=name or f"Song {track_id}",
        artist=artist,
        artists=(artist,),
        album="Test Album",
        markets=frozenset(markets) if markets is not None else None,
        isrc=isrc,
        relinked_id=relinked_id,
    )


class FakeCatalog(CatalogService):
    """
    In-memory catalog.

    Collections are served in pages of page_size with "<collection>:<offset>"
    continuation tokens. Failures are injected through the *_errors dicts:
    a list of exceptions is consumed one per call before the call succeeds.
    """

    def __init__(self, page_size=100):
        self.page_size = page_size
        self.collections = {}
        self.liked = []
        self.relinks = {}
        self.skipped_per_page = 0

        # Injected failures
        self.page_errors = {}          # token (None for the first page) -> [exc, ...]
        self.relink_errors = {}        # track_id -> [exc, ...]
        self.membership_errors = []    # [exc, ...]
        self.add_errors = []           # [exc, ...] raised for whole add calls
        self.add_item_failures = {}    # track_id -> reason
        self.remove_item_failures = {}  # track_id -> reason
        self.on_add = None             # callback(track_ids) run before each add

        # Call logs
        self.page_calls = []
        self.relink_calls = []
        self.membership_calls = []
        self.add_calls = []
        self.remove_calls = []

        self._lock = threading.Lock()

    def _raise_injected(self, errors):
        with self._lock:
            if errors:
                raise errors.pop(0)

    def get_collection_page(self, collection_id, continuation_token=None):
        self.page_calls.append((collection_id, continuation_token))
        self._raise_injected(self.page_errors.get(continuation_token))

        if collection_id not in self.collections:
            raise PermanentCatalogError(f"Not found: {collection_id}", http_status=404)

        tracks = self.collections[collection_id]
        offset = int(continuation_token.rsplit(":", 1)[1]) if continuation_token else 0
        end = offset + self.page_size
        next_token = ContinuationToken(f"{collection_id}:{end}") if end < len(tracks) else None

        return CollectionPage(
            tracks=tuple(tracks[offset:end]),
            next_token=next_token,
            skipped_items=self.skipped_per_page,
            total=len(tracks),
        )

    def get_track_detail(self, track_id):
        for tracks in self.collections.values():
            for track in tracks:
                if track.track_id == track_id:
                    return track
        raise PermanentCatalogError(f"Track not found: {track_id}", http_status=404)

    def get_relink(self, track_id, reference_market):
        with self._lock:
            self.relink_calls.append((track_id, reference_market))
        self._raise_injected(self.relink_errors.get(track_id))
        return self.relinks.get(track_id)

    def is_in_liked_library(self, track_ids):
        track_ids = list(track_ids)
        self.membership_calls.append(track_ids)
        self._raise_injected(self.membership_errors)
        return {track_id: track_id in self.liked for track_id in track_ids}

    def add_to_liked_library(self, track_ids, max_batch_size):
        assert len(track_ids) <= max_batch_size
        if self.on_add is not None:
            self.on_add(list(track_ids))
        self.add_calls.append(list(track_ids))
        self._raise_injected(self.add_errors)

        results = {}
        for track_id in track_ids:
            reason = self.add_item_failures.get(track_id)
            if reason is None and track_id not in self.liked:
                self.liked.append(track_id)
            results[track_id] = reason
        return results

    def remove_from_liked_library(self, track_ids, max_batch_size):
        assert len(track_ids) <= max_batch_size
        self.remove_calls.append(list(track_ids))

        results = {}
        for track_id in track_ids:
            reason = self.remove_item_failures.get(track_id)
            if reason is None and track_id in self.liked:
                self.liked.remove(track_id)
            results[track_id] = reason
        return results

    def get_liked_library_count(self):
        return len(self.liked)

    def set_liked_tracks(self, tracks):
        """Make tracks the liked library, both as a collection and as membership."""
        self.collections[LIKED_LIBRARY] = list(tracks)
        self.liked = [track.track_id for track in tracks]


def transient(message="rate limited"):
    return TransientCatalogError(message, http_status=429, is_rate_limit=True)


def permanent(message="not found"):
    return PermanentCatalogError(message, http_status=404)


@pytest.fixture
def catalog():
    """Empty in-memory catalog"""
    return FakeCatalog()


@pytest.fixture
def no_wait_policy():
    """Retry policy that never sleeps"""
    return RetryPolicy(max_attempts=3, base_delay=0, max_delay=0, jitter=0, sleep=lambda seconds: None)


@pytest.fixture
def settings():
    """Engine settings with a fast retry policy"""
    return AuditSettings(
        market="US",
        batch_size=50,
        workers=4,
        retry=RetrySettings(max_attempts=3, base_delay=0, max_delay=0),
    )
