"""
Best-match selection among YouTube search candidates.

Scoring (case-insensitive substring checks):

    +100  track name appears in the video title
    +80   per artist whose name appears in the title
    +60   per artist whose name appears in the channel name
    +20   channel name contains "official"
    +15   channel name contains "vevo"
    +2 * (N - index)  position bonus, N usable candidates, index 0-based

The highest total wins; ties keep the earlier candidate. When every
candidate scores 0 before the position bonus the first usable one is
returned, flagged as low confidence.

Pure functions, no I/O besides a log warning on low-confidence picks.
"""

from tunebridge.core.exceptions import NoUsableCandidates
from tunebridge.core.logger import get_logger
from tunebridge.youtube.models import CandidateVideo, SelectionResult

logger = get_logger(__name__)


TRACK_NAME_IN_TITLE_SCORE = 100
ARTIST_IN_TITLE_SCORE = 80
ARTIST_IN_CHANNEL_SCORE = 60
OFFICIAL_CHANNEL_SCORE = 20
VEVO_CHANNEL_SCORE = 15
POSITION_BONUS_PER_RANK = 2


def _contains(haystack: str, needle: str) -> bool:
    # An empty needle would match everything
    return bool(needle) and needle in haystack


def signal_score(track_name: str, artist_names: list[str], candidate: CandidateVideo) -> int:
    """Score a candidate on content signals only (no position bonus)."""
    title = candidate.title.lower()
    channel = candidate.channel_title.lower()
    score = 0

    if _contains(title, track_name.lower()):
        score += TRACK_NAME_IN_TITLE_SCORE

    for artist in artist_names:
        artist_lower = artist.lower()
        if _contains(title, artist_lower):
            score += ARTIST_IN_TITLE_SCORE
        if _contains(channel, artist_lower):
            score += ARTIST_IN_CHANNEL_SCORE

    if "official" in channel:
        score += OFFICIAL_CHANNEL_SCORE
    if "vevo" in channel:
        score += VEVO_CHANNEL_SCORE

    return score


def select_best(
    track_name: str,
    artist_names: list[str],
    candidates: list[CandidateVideo]
) -> SelectionResult:
    """
    Pick the candidate that best matches a track.

    Args:
        track_name: Track title from the store.
        artist_names: Credited artist names, in credit order.
        candidates: Search results in provider order (most relevant first).

    Returns:
        SelectionResult with the winning candidate.

    Raises:
        NoUsableCandidates: If candidates is empty or none has a video_id.
    """
    usable = [c for c in candidates if c.video_id]
    if not usable:
        raise NoUsableCandidates(len(candidates))

    total = len(usable)
    best = usable[0]
    best_score = -1
    any_signal = False

    for index, candidate in enumerate(usable):
        signal = signal_score(track_name, artist_names, candidate)
        if signal > 0:
            any_signal = True

        score = signal + (total - index) * POSITION_BONUS_PER_RANK
        if score > best_score:
            best = candidate
            best_score = score

    if not any_signal:
        first = usable[0]
        logger.warning(
            f"No candidate matched '{track_name}' by title, artist or channel; "
            f"using first result '{first.title}'"
        )
        return SelectionResult(
            candidate=first,
            score=total * POSITION_BONUS_PER_RANK,
            low_confidence=True,
        )

    return SelectionResult(candidate=best, score=best_score)
