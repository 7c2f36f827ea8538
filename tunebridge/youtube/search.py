"""
YouTube video search providers.

Two interchangeable providers are available, chosen once at startup by
create_search_provider():

    - YouTubeSearchProvider: YouTube Data API v3 (requires an API key)
    - MockSearchProvider: deterministic fake results for running without
      a key; the same query always yields the same video ID

Both are safe to call from several conversion threads at once.
"""

import hashlib
import time
from abc import ABC, abstractmethod

import requests

from tunebridge.core.config import YouTubeConfig
from tunebridge.core.exceptions import RequestError
from tunebridge.core.logger import get_logger
from tunebridge.youtube.models import CandidateVideo

logger = get_logger(__name__)


SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
REQUEST_TIMEOUT = 30


class SearchProvider(ABC):
    """
    Interface for video search.

    Attributes:
        rate_limited: True if batch callers should pause between searches.
    """

    rate_limited: bool = False

    @abstractmethod
    def search(
        self,
        query: str,
        max_results: int,
        order: str = "relevance",
        duration: str = "medium"
    ) -> list[CandidateVideo]:
        """
        Search for videos.

        Args:
            query: Free-text query ("Song Title Artist").
            max_results: Maximum number of candidates to return.
            order: YouTube result ordering ("relevance", "viewCount", ...).
            duration: YouTube duration filter ("short", "medium", "long", "any").

        Returns:
            Candidates in provider order, possibly empty.
        """


class MockSearchProvider(SearchProvider):
    """
    Offline provider returning one deterministic candidate per query.

    The video ID is the first 11 hex characters of md5(query), so repeated
    runs convert a track to the same URL.
    """

    rate_limited = False

    def __init__(self, latency: float = 0.2) -> None:
        self.latency = latency

    def search(
        self,
        query: str,
        max_results: int,
        order: str = "relevance",
        duration: str = "medium"
    ) -> list[CandidateVideo]:
        if self.latency > 0:
            time.sleep(self.latency)

        video_id = hashlib.md5(query.encode("utf-8")).hexdigest()[:11]
        logger.debug(f"Mock search '{query}' -> {video_id}")
        return [
            CandidateVideo(
                video_id=video_id,
                title=f"{query} (Official Video)",
                channel_title="Mock Channel",
            )
        ][:max(max_results, 0)]


class YouTubeSearchProvider(SearchProvider):
    """
    Search through the YouTube Data API v3 search endpoint.

    Each search costs 100 quota units, so batch callers pause between
    calls (rate_limited is True).
    """

    rate_limited = True

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    def search(
        self,
        query: str,
        max_results: int,
        order: str = "relevance",
        duration: str = "medium"
    ) -> list[CandidateVideo]:
        """
        Raises:
            RequestError: On transport failure, non-2xx status or a body
                          that is not JSON or not a list of search items.
        """
        params = {
            "part": "snippet",
            "q": query,
            "maxResults": max_results,
            "order": order,
            "videoDuration": duration,
            "type": "video",
            "key": self.api_key,
        }

        try:
            response = requests.get(SEARCH_URL, params=params, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise RequestError(
                f"YouTube search request failed: {e}",
                details={"query": query, "original_error": str(e)},
                url=SEARCH_URL
            ) from e

        if not response.ok:
            raise RequestError(
                f"YouTube search failed with HTTP {response.status_code}",
                details={"query": query},
                url=SEARCH_URL,
                status_code=response.status_code,
                response_body=response.text
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RequestError(
                "YouTube search returned invalid JSON",
                details={"query": query},
                url=SEARCH_URL,
                status_code=response.status_code,
                response_body=response.text
            ) from e

        items = (data.get("items") or []) if isinstance(data, dict) else None
        if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
            raise RequestError(
                "YouTube search returned an unexpected response shape",
                details={"query": query},
                url=SEARCH_URL,
                status_code=response.status_code,
                response_body=response.text
            )

        candidates = [CandidateVideo.from_api_item(item) for item in items]
        logger.debug(f"YouTube search '{query}' returned {len(candidates)} results")
        return candidates


def create_search_provider(config: YouTubeConfig) -> SearchProvider:
    """
    Build the provider for this run: live with an API key, mock without.
    """
    if config.mock_mode:
        logger.info("No YouTube API key configured, using mock search")
        return MockSearchProvider(latency=config.mock_latency)
    return YouTubeSearchProvider(config.api_key)
