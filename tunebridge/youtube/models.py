"""
Data models for YouTube search and conversion results.

    - CandidateVideo: one search result, scored by the selector
    - SelectionResult: the chosen candidate with its score
    - BatchResult: counters returned by a batch conversion run
    - TrackOutcome: per-track result reported while a batch runs
"""

from dataclasses import dataclass
from typing import Any


YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={video_id}"


@dataclass(frozen=True)
class CandidateVideo:
    """
    Immutable representation of a YouTube search result.

    Attributes:
        video_id: 11-character YouTube video ID. None for results that
                  are channels or playlists; those can never be selected.
        title: Video title as shown on YouTube.
        channel_title: Name of the uploading channel.
    """

    video_id: str | None
    title: str
    channel_title: str

    @property
    def url(self) -> str | None:
        if not self.video_id:
            return None
        return YOUTUBE_WATCH_URL.format(video_id=self.video_id)

    @classmethod
    def from_api_item(cls, item: dict[str, Any]) -> "CandidateVideo":
        """
        Create a CandidateVideo from a YouTube Data API v3 search item.

        Args:
            item: One element of the response's "items" list:
                  {"id": {"videoId": ...}, "snippet": {"title": ..., "channelTitle": ...}}
        """
        item_id = item.get("id")
        snippet = item.get("snippet")
        if not isinstance(item_id, dict):
            item_id = {}
        if not isinstance(snippet, dict):
            snippet = {}
        return cls(
            video_id=item_id.get("videoId") or None,
            title=snippet.get("title") or "",
            channel_title=snippet.get("channelTitle") or "",
        )


@dataclass(frozen=True)
class SelectionResult:
    """
    Outcome of selecting the best candidate.

    Attributes:
        candidate: The chosen video (always has a video_id).
        score: Total score including the position bonus.
        low_confidence: True when no candidate matched the track name, an
                        artist or an official channel, so the pick rests on
                        search position alone.
    """

    candidate: CandidateVideo
    score: int
    low_confidence: bool = False


@dataclass(frozen=True)
class BatchResult:
    """
    Counters for one batch conversion run.

    processed == successful + failed always holds.
    """

    processed: int = 0
    successful: int = 0
    failed: int = 0

    @property
    def success_rate(self) -> float:
        """Successful share in percent (0.0 when nothing was processed)."""
        if self.processed == 0:
            return 0.0
        return self.successful / self.processed * 100.0


@dataclass(frozen=True)
class TrackOutcome:
    """
    Result of converting one track inside a batch, passed to on_result.

    Attributes:
        track_id: Store id of the track.
        track_name: Track title, for display.
        youtube_url: Stored URL, or None if the conversion failed.
        low_confidence: Whether the selection rested on position alone.
        error: Failure reason, or None on success.
    """

    track_id: str
    track_name: str
    youtube_url: str | None = None
    low_confidence: bool = False
    error: str | None = None

    @property
    def converted(self) -> bool:
        return self.youtube_url is not None
