"""
Track-to-YouTube conversion for tunebridge.

For each stored track without a YouTube URL:
    1. Build a search query from the track name and its first artist
    2. Search YouTube (live API or mock)
    3. Pick the best candidate with the selector
    4. Store https://www.youtube.com/watch?v=<id> on the track

A track that already has a URL is never searched again unless a forced
conversion is requested. In batch runs a failing track is logged to the
conversion failure report and the run continues with the next one.

Usage:
    service = ConversionService(database, create_search_provider(config.youtube), config.youtube)
    result = service.convert_batch(limit=50)
    print(f"{result.successful}/{result.processed} converted")
"""

import queue
import threading
import time
from typing import Callable

from tunebridge.core.config import YouTubeConfig
from tunebridge.core.database import Database
from tunebridge.core.exceptions import NoResultsFound, StoreError, TuneBridgeError
from tunebridge.core.logger import get_logger, log_conversion_failure
from tunebridge.core.models import Artist, ConversionStats, Track
from tunebridge.youtube.models import BatchResult, SelectionResult, TrackOutcome
from tunebridge.youtube.search import SearchProvider
from tunebridge.youtube.selector import select_best

logger = get_logger(__name__)


SEARCH_ORDER = "relevance"
SEARCH_DURATION = "medium"

ResultCallback = Callable[[TrackOutcome], None]


def build_search_query(track: Track, artists: list[Artist]) -> str:
    """
    Build the search query for a track.

    "<name> <first artist>" when an artist is known, "<name> official" for
    Spotify tracks without artists, the bare name otherwise.
    """
    if artists:
        return f"{track.name} {artists[0].name}"
    if track.spotify_uri:
        return f"{track.name} official"
    return track.name


class ConversionService:
    """
    Converts stored tracks to YouTube URLs.

    Attributes:
        database: Track store read from and written to.
        search_provider: Video search backend.
        max_results: Candidates requested per search.
        request_delay: Pause between searches when the provider is rate-limited.
    """

    def __init__(
        self,
        database: Database,
        search_provider: SearchProvider,
        youtube_config: YouTubeConfig | None = None
    ) -> None:
        config = youtube_config or YouTubeConfig()
        self.database = database
        self.search_provider = search_provider
        self.max_results = config.max_results
        self.request_delay = config.request_delay
        self._pace_lock = threading.Lock()
        self._last_search: float | None = None

    # =========================================================================
    # Single Track
    # =========================================================================

    def convert_one(self, track: Track, artists: list[Artist]) -> str:
        """
        Return the YouTube URL for a track, searching only if none is stored.

        Raises:
            NoResultsFound: If the search returned nothing.
            NoUsableCandidates: If no result had a video id.
            RequestError: If the search request failed.
            StoreError: If the URL could not be stored.
        """
        if track.is_converted:
            return track.youtube_url

        url, _ = self._search_and_store(track, artists)
        return url

    def convert_one_forced(self, track_id: str) -> str:
        """
        Re-search a track and overwrite its stored URL.

        Raises:
            StoreError: If the track id is unknown.
            NoResultsFound, NoUsableCandidates, RequestError: As convert_one().
        """
        track = self.database.get_by_id(track_id)
        if track is None:
            raise StoreError(f"Track not found: {track_id}", details={"track_id": track_id})

        artists = self.database.get_artists(track_id)
        url, _ = self._search_and_store(track, artists)
        return url

    def _search_and_store(self, track: Track, artists: list[Artist]) -> tuple[str, SelectionResult]:
        query = build_search_query(track, artists)
        self._pace()
        candidates = self.search_provider.search(
            query, self.max_results, order=SEARCH_ORDER, duration=SEARCH_DURATION
        )
        if not candidates:
            raise NoResultsFound(query, details={"track_id": track.id})

        selection = select_best(track.name, [a.name for a in artists], candidates)
        url = selection.candidate.url

        self.database.set_youtube_url(track.id, url)
        logger.debug(
            f"Converted {track.name} ({track.id}) -> {url} "
            f"[score {selection.score}, '{selection.candidate.title}']"
        )
        return url, selection

    def _process(self, track: Track) -> TrackOutcome:
        """Convert one track for a batch, turning failures into an outcome."""
        try:
            if track.is_converted:
                return TrackOutcome(track.id, track.name, youtube_url=track.youtube_url)
            artists = self.database.get_artists(track.id)
            url, selection = self._search_and_store(track, artists)
            return TrackOutcome(
                track.id, track.name, youtube_url=url, low_confidence=selection.low_confidence
            )
        except TuneBridgeError as e:
            log_conversion_failure(logger, track.id, track.name, str(e))
            return TrackOutcome(track.id, track.name, error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error converting {track.name} ({track.id})")
            log_conversion_failure(logger, track.id, track.name, f"Unexpected error: {e}")
            return TrackOutcome(track.id, track.name, error=f"Unexpected error: {e}")

    def _pace(self) -> None:
        """Space searches request_delay apart across all threads of a rate-limited provider."""
        if not self.search_provider.rate_limited or self.request_delay <= 0:
            return
        with self._pace_lock:
            if self._last_search is not None:
                wait = self._last_search + self.request_delay - time.monotonic()
                if wait > 0:
                    time.sleep(wait)
            self._last_search = time.monotonic()

    # =========================================================================
    # Batch Conversion
    # =========================================================================

    @staticmethod
    def _effective_limit(limit: int, max_tracks: int | None) -> int:
        if max_tracks is None:
            return limit
        return min(limit, max_tracks)

    def convert_batch(
        self,
        limit: int,
        max_tracks: int | None = None,
        on_result: ResultCallback | None = None
    ) -> BatchResult:
        """
        Convert unconverted tracks one after another, in store order.

        Args:
            limit: Number of unconverted tracks to take.
            max_tracks: Optional cap; the smaller of the two is used.
            on_result: Called with a TrackOutcome after each track.

        Returns:
            BatchResult with processed == successful + failed.
        """
        tracks = self.database.get_unconverted(self._effective_limit(limit, max_tracks))
        logger.info(f"Converting {len(tracks)} tracks")

        successful = 0
        failed = 0

        for track in tracks:
            outcome = self._process(track)
            if outcome.converted:
                successful += 1
            else:
                failed += 1

            if on_result is not None:
                on_result(outcome)

        return self._finish(BatchResult(len(tracks), successful, failed))

    def convert_concurrent(
        self,
        limit: int,
        workers: int,
        max_tracks: int | None = None,
        on_result: ResultCallback | None = None
    ) -> BatchResult:
        """
        Convert unconverted tracks on a pool of worker threads.

        Track ids are fed through a bounded queue; each worker resolves the
        track from the store, converts it and records the outcome. Order of
        completion is not guaranteed. on_result calls are serialized, and searches
        on a rate-limited provider stay request_delay apart across all workers.
        """
        tracks = self.database.get_unconverted(self._effective_limit(limit, max_tracks))
        workers = max(1, min(workers, len(tracks) or 1))
        logger.info(f"Converting {len(tracks)} tracks with {workers} workers")

        work_queue: queue.Queue[str | None] = queue.Queue(maxsize=workers * 2)
        counts = {"processed": 0, "successful": 0, "failed": 0}
        counts_lock = threading.Lock()

        def record(outcome: TrackOutcome) -> None:
            with counts_lock:
                counts["processed"] += 1
                counts["successful" if outcome.converted else "failed"] += 1
                if on_result is not None:
                    on_result(outcome)

        def worker() -> None:
            while True:
                track_id = work_queue.get()
                try:
                    if track_id is None:
                        return
                    try:
                        outcome = self._process_id(track_id)
                    except Exception as e:
                        logger.exception(f"Worker failed on track {track_id}")
                        outcome = TrackOutcome(track_id, track_id, error=f"Unexpected error: {e}")
                    record(outcome)
                finally:
                    work_queue.task_done()

        threads = [
            threading.Thread(target=worker, name=f"convert-{i}", daemon=True)
            for i in range(workers)
        ]
        for thread in threads:
            thread.start()

        for track in tracks:
            work_queue.put(track.id)
        for _ in threads:
            work_queue.put(None)

        for thread in threads:
            thread.join()

        return self._finish(BatchResult(counts["processed"], counts["successful"], counts["failed"]))

    def _process_id(self, track_id: str) -> TrackOutcome:
        try:
            track = self.database.get_by_id(track_id)
        except StoreError as e:
            log_conversion_failure(logger, track_id, track_id, str(e))
            return TrackOutcome(track_id, track_id, error=str(e))

        if track is None:
            reason = f"Track not found: {track_id}"
            log_conversion_failure(logger, track_id, track_id, reason)
            return TrackOutcome(track_id, track_id, error=reason)

        return self._process(track)

    @staticmethod
    def _finish(result: BatchResult) -> BatchResult:
        logger.info(
            f"Conversion finished: {result.successful}/{result.processed} converted, "
            f"{result.failed} failed ({result.success_rate:.1f}% success)"
        )
        return result

    def get_conversion_stats(self) -> ConversionStats:
        return self.database.get_conversion_counts()
