"""
Paginated collection reader.

Walks a collection page by page through the catalog's continuation
tokens, fetching page N+1 on a background thread while the caller
processes page N. Only one page can be in flight: the token for page
N+2 is not known until page N+1 has arrived.

Failure Handling:
    A page that still fails after the retry policy gives up ends the
    walk. The reader records the error and marks itself incomplete; no
    exception reaches the caller.

Cancellation:
    The optional cancel event is checked before each page is handed out.
    A prefetch already in flight is discarded.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterator

from spot_audit.catalog.base import CatalogService, CollectionPage, ContinuationToken
from spot_audit.core.logger import get_logger
from spot_audit.core.retry import CallResult, RetryPolicy

logger = get_logger(__name__)


class PageReader:
    """
    Iterable over the pages of one collection.

    Attributes:
        errors: Run-level errors recorded while reading.
        complete: False once a page failed or the walk was cancelled.
        cancelled: True when the walk stopped on the cancel event.
        skipped_items: Non-track entries reported by the catalog so far.
        pages_read: Pages handed out so far.
    """

    def __init__(
        self,
        catalog: CatalogService,
        collection_id: str,
        policy: RetryPolicy,
        cancel_event: threading.Event | None = None
    ) -> None:
        self._catalog = catalog
        self._collection_id = collection_id
        self._policy = policy
        self._cancel_event = cancel_event

        self.errors: list[str] = []
        self.complete = True
        self.cancelled = False
        self.skipped_items = 0
        self.pages_read = 0

    def _fetch(self, token: ContinuationToken | None) -> CallResult[CollectionPage]:
        return self._policy.call(
            self._catalog.get_collection_page,
            self._collection_id,
            token,
            description=f"fetch page {self.pages_read + 1} of {self._collection_id}"
        )

    def _cancel_requested(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def __iter__(self) -> Iterator[CollectionPage]:
        if self._cancel_requested():
            self.cancelled = True
            self.complete = False
            return

        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="page-prefetch") as executor:
            pending: Future | None = executor.submit(self._fetch, None)

            while pending is not None:
                if self._cancel_requested():
                    logger.info(f"Cancelled after {self.pages_read} pages of {self._collection_id}")
                    self.cancelled = True
                    self.complete = False
                    return

                result = pending.result()
                if not result.ok:
                    message = (
                        f"Could not read page {self.pages_read + 1} of "
                        f"{self._collection_id}: {result.reason}"
                    )
                    logger.error(message)
                    self.errors.append(message)
                    self.complete = False
                    return

                page = result.value
                self.skipped_items += page.skipped_items
                self.pages_read += 1

                # Prefetch the next page before handing this one out
                pending = None
                if page.next_token is not None:
                    pending = executor.submit(self._fetch, page.next_token)

                logger.debug(
                    f"Page {self.pages_read} of {self._collection_id}: "
                    f"{len(page.tracks)} tracks, {page.skipped_items} skipped"
                )
                yield page
