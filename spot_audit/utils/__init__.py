"""
Utility functions for spot-audit.

This module provides small helpers used across the application:
    - Market code validation
    - Chunking of id sequences for batched catalog calls
    - Threading utilities for parallel lookups
    - Spotify URL / URI / id parsing

Usage:
    from spot_audit.utils import chunked, extract_playlist_id, normalize_market
"""

import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, Iterator, Sequence, TypeVar

from tqdm import tqdm

from spot_audit.core.exceptions import ConfigurationError


T = TypeVar("T")
R = TypeVar("R")

_MARKET_PATTERN = re.compile(r"^[A-Za-z]{2}$")


def normalize_market(market: str | None) -> str:
    """
    Validate a reference market and return it upper-cased.

    Args:
        market: ISO 3166-1 alpha-2 country code, e.g. "us" or "DE".

    Returns:
        The upper-case code.

    Raises:
        ConfigurationError: If market is missing or not two ASCII letters.

    Examples:
        normalize_market(" be ")  # "BE"
        normalize_market("USA")   # raises ConfigurationError
    """
    if not isinstance(market, str) or not _MARKET_PATTERN.match(market.strip()):
        raise ConfigurationError(
            "Reference market must be a two-letter country code (e.g. 'US')",
            details={"market": market}
        )
    return market.strip().upper()


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """
    Split a sequence into consecutive lists of at most size items.

    Args:
        items: The sequence to split. Order is preserved.
        size: Maximum chunk length (>= 1).

    Yields:
        Lists of items, the last one possibly shorter.

    Raises:
        ValueError: If size is less than 1.

    Example:
        list(chunked(["a", "b", "c"], 2))  # [["a", "b"], ["c"]]
    """
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def run_in_parallel(
    func: Callable[[T], R],
    items: Iterable[T],
    num_threads: int = 4,
    description: str = "Processing",
    show_progress: bool = False
) -> list[tuple[T, R | Exception]]:
    """
    Run a function on multiple items in parallel.

    Args:
        func: Function to call for each item. Takes one argument.
        items: Iterable of items to process.
        num_threads: Maximum number of worker threads.
        description: Description for the progress bar.
        show_progress: Whether to show a tqdm progress bar.

    Returns:
        List of (item, result) tuples in completion order, where result is
        either the return value or the Exception the call raised.

    Error Handling:
        Exceptions are caught and returned in the result tuple so the
        caller decides what a failure means. Processing continues for the
        other items.
    """
    items_list = list(items)
    results: list[tuple[T, R | Exception]] = []
    if not items_list:
        return results

    with ThreadPoolExecutor(max_workers=max(1, min(num_threads, len(items_list)))) as executor:
        future_to_item = {
            executor.submit(func, item): item
            for item in items_list
        }

        iterator = as_completed(future_to_item)
        if show_progress:
            iterator = tqdm(
                iterator,
                total=len(items_list),
                desc=description,
                unit="track"
            )

        for future in iterator:
            item = future_to_item[future]
            try:
                results.append((item, future.result()))
            except Exception as e:
                results.append((item, e))

    return results


def extract_spotify_id(url_or_id: str) -> str:
    """
    Extract Spotify ID from a URL or URI, or return the ID as-is.

    Handles:
        - https://open.spotify.com/playlist/ID
        - https://open.spotify.com/playlist/ID?si=xxx
        - spotify:playlist:ID
        - Just the ID
    """
    url_or_id = url_or_id.strip()

    if url_or_id.startswith("spotify:"):
        return url_or_id.split(":")[-1]

    if "spotify.com" in url_or_id:
        url_or_id = url_or_id.split("?")[0]
        return url_or_id.rstrip("/").split("/")[-1]

    return url_or_id


def extract_playlist_id(url_or_id: str) -> str:
    """
    Extract a playlist ID from a Spotify playlist URL, URI or bare id.

    Raises:
        ValueError: If a URL or URI is given that does not point at a playlist.

    Examples:
        extract_playlist_id("https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M")
        # Returns: "37i9dQZF1DXcBWIGoYBM5M"
    """
    value = url_or_id.strip()
    if ("spotify.com" in value or value.startswith("spotify:")) and "playlist" not in value:
        raise ValueError(f"Not a playlist URL: {url_or_id}")
    return extract_spotify_id(value)
