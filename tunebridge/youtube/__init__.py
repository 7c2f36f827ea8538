"""
YouTube conversion for tunebridge.

    - search: live (YouTube Data API v3) and mock search providers
    - selector: best-candidate scoring
    - converter: ConversionService, single-track and batch conversion
"""

from tunebridge.youtube.converter import ConversionService, build_search_query
from tunebridge.youtube.models import (
    BatchResult,
    CandidateVideo,
    SelectionResult,
    TrackOutcome,
)
from tunebridge.youtube.search import (
    MockSearchProvider,
    SearchProvider,
    YouTubeSearchProvider,
    create_search_provider,
)
from tunebridge.youtube.selector import select_best

__all__ = [
    "ConversionService",
    "build_search_query",
    "BatchResult",
    "CandidateVideo",
    "SelectionResult",
    "TrackOutcome",
    "SearchProvider",
    "MockSearchProvider",
    "YouTubeSearchProvider",
    "create_search_provider",
    "select_best",
]
