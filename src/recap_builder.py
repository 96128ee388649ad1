"""Main orchestrator that turns YouTube uploads into the site's JSON artifacts."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import requests

from models.video import VideoItem, format_timestamp
from models.weekend import ArchiveArtifact, Weekend, normalize_weekend_payload, with_season_year
from services.archive_merger import ArchiveMerger, dedupe_videos
from services.artifact_store import ArtifactStore
from services.calendar_service import CalendarService
from services.content_filter import ContentFilter
from services.session_classifier import SessionClassifier, SessionRules
from services.standings_service import StandingsService, checked_payload, default_snapshot
from services.weekend_grouper import WeekendGrouper
from services.youtube_service import YouTubeService, MAX_PAGE_SIZE
from utils.config import load_config, validate_config
from utils.retry import ConfigurationError, RetryableError

logger = logging.getLogger(__name__)

CURRENT_FEED_FILE = 'videos.json'

# Season order used when no calendar file exists for the target year
DEFAULT_GRANDS_PRIX = [
    'Australian Grand Prix',
    'Chinese Grand Prix',
    'Japanese Grand Prix',
    'Bahrain Grand Prix',
    'Saudi Arabian Grand Prix',
    'Miami Grand Prix',
    'Emilia Romagna Grand Prix',
    'Monaco Grand Prix',
    'Spanish Grand Prix',
    'Canadian Grand Prix',
    'Austrian Grand Prix',
    'British Grand Prix',
    'Belgian Grand Prix',
    'Hungarian Grand Prix',
    'Dutch Grand Prix',
    'Italian Grand Prix',
    'Azerbaijan Grand Prix',
    'Singapore Grand Prix',
    'United States Grand Prix',
    'Mexico City Grand Prix',
    'Brazilian Grand Prix',
    'Las Vegas Grand Prix',
    'Qatar Grand Prix',
    'Abu Dhabi Grand Prix',
]


def archive_filename(year: int) -> str:
    return f'videos-{year}.json'


def manual_filename(year: int) -> str:
    return f'archive-{year}-manual.json'


def standings_filename(year: int) -> str:
    return f'standings{year}.json'


def _now() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def _in_name_order(weekends: Sequence[Weekend], names: Sequence[str]) -> List[Weekend]:
    """Order weekends by position in names; others keep their order after them."""
    position = {name: index for index, name in enumerate(names)}
    return sorted(weekends, key=lambda w: position.get(w.name, len(position)))


class RecapBuilder:
    """Central orchestrator for the fetch and build flows."""

    def __init__(
        self,
        config: Optional[Dict] = None,
        youtube_service: Optional[YouTubeService] = None,
        standings_service: Optional[StandingsService] = None,
        store: Optional[ArtifactStore] = None,
        require_youtube: bool = True,
    ):
        """Initialize the builder with configuration.

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.config = config or load_config()

        config_errors = validate_config(
            self.config, require_youtube=require_youtube and youtube_service is None
        )
        if config_errors:
            error_msg = "Configuration errors: " + "; ".join(config_errors)
            logger.error(error_msg)
            raise ConfigurationError(error_msg)

        self.target_year: int = self.config['target_year']
        self.channel_id: str = self.config.get('channel_id', '')

        self.classifier = SessionClassifier(SessionRules.named(self.config.get('session_rules', 'standard')))
        self.recap_filter = ContentFilter(self.classifier)
        # Season archive checks exclusions against titles only
        self.archive_filter = ContentFilter(self.classifier, exclude_on_description=False)
        self.grouper = self._make_grouper()
        self.merger = ArchiveMerger(self.grouper)

        self.store = store or ArtifactStore(self.config['data_dir'])
        self.calendar_service = CalendarService(self.store)

        if youtube_service is None and require_youtube:
            youtube_service = YouTubeService(
                self.config['youtube_api_key'],
                request_delay_ms=self.config.get('request_delay_ms', 0),
                timeout_seconds=self.config.get('timeout_seconds', 30.0),
                max_retries=self.config.get('max_retries', 5),
                retry_base_delay=self.config.get('retry_base_delay', 0.5),
            )
        self.youtube_service = youtube_service

        self.standings_service = standings_service or StandingsService(
            self.config.get('standings_api_base', 'https://api.jolpi.ca/ergast/f1'),
            max_retries=self.config.get('standings_max_retries', 3),
            retry_delay_ms=self.config.get('standings_retry_delay_ms', 1500),
            timeout_seconds=self.config.get('standings_timeout_seconds', 15.0),
        )

        logger.debug("RecapBuilder initialized")

    def _make_grouper(self, canonical_names: Optional[Sequence[str]] = None) -> WeekendGrouper:
        return WeekendGrouper(
            self.classifier,
            self.target_year,
            canonical_names=canonical_names,
            window_before_days=self.config.get('window_before_days', 1),
            window_after_days=self.config.get('window_after_days', 3),
        )

    def _log_usage(self) -> None:
        if self.youtube_service is None:
            return
        usage = self.youtube_service.usage_summary()
        by_endpoint = ", ".join(f"{e['endpoint']}={e['count']}" for e in usage['byEndpoint'])
        logger.info(f"YouTube API calls: {usage['apiCalls']} ({by_endpoint or 'none'})")

    async def _fetch_recent_uploads(self) -> List[VideoItem]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            self.youtube_service.fetch_recent_uploads,
            self.channel_id,
            self.config.get('max_results', 150),
        )

    # ----- current feed -----

    async def build_current_feed(self) -> Optional[ArchiveArtifact]:
        """Refresh videos.json and merge the grouped weekends into the season archive.

        Returns:
            The written current feed, or None if the fetch produced no
            weekends and the existing files were left untouched
        """
        max_results = self.config.get('max_results', 150)
        latest_window = self.config.get('latest_window', 3)

        logger.info("Fetching latest videos from Formula 1 channel...")
        videos = dedupe_videos(await self._fetch_recent_uploads())
        logger.info(f"Found {len(videos)} unique videos from recent feed")

        recaps = self.recap_filter.filter_videos(videos)[:max_results]
        logger.info(f"Filtered to {len(recaps)} recap videos")

        grouped = self.grouper.group_by_name(recaps)
        season = self.grouper.select_season(grouped)
        if len(season) < len(grouped):
            logger.info(f"Dropped {len(grouped) - len(season)} weekends outside {self.target_year}")
        logger.info(f"Organized into {len(season)} Grand Prix weekends")

        current = [w for w in season if not w.is_unknown][:latest_window]
        self._log_usage()

        if not current:
            logger.warning(
                f"No race weekends detected from API response. Preserving existing "
                f"{CURRENT_FEED_FILE} to avoid wiping the site."
            )
            return None

        logger.info(f"Trimmed to {len(current)} weekends for current feed (latest {latest_window})")
        timestamp = _now()
        feed = ArchiveArtifact(current, last_updated=timestamp)

        existing = self.store.load_archive(archive_filename(self.target_year))
        merged = self.merger.merge_archives(
            existing.grand_prix_weekends if existing else [], season
        )
        archive = ArchiveArtifact(merged, last_updated=timestamp, year=str(self.target_year))

        self.store.write_archive(CURRENT_FEED_FILE, feed)
        self.store.write_archive(archive_filename(self.target_year), archive)
        logger.info(
            f"Video data saved: {feed.total_videos} videos in feed, "
            f"{archive.total_videos} in {self.target_year} archive"
        )
        return feed

    # ----- season archive (per Grand Prix search) -----

    def season_grand_prix_names(self) -> List[str]:
        """Grand Prix names for the target season, in calendar order."""
        calendar = self.calendar_service.load(self.target_year)
        if calendar:
            return [entry.weekend_name(self.target_year) for entry in calendar]
        return [f"{self.target_year} {name}" for name in DEFAULT_GRANDS_PRIX]

    async def build_season_archive(self) -> Optional[ArchiveArtifact]:
        """Search the channel once per Grand Prix and rebuild videos-{year}.json.

        In missing-only mode, weekends that already have videos are neither
        searched nor overwritten.
        """
        loop = asyncio.get_running_loop()
        filename = archive_filename(self.target_year)
        names = self.season_grand_prix_names()
        grouper = self._make_grouper(canonical_names=names)
        merger = ArchiveMerger(grouper)

        logger.info(f"Fetching ALL {self.target_year} F1 archive videos...")

        existing = None
        if self.config.get('missing_only'):
            existing = self.store.load_archive(filename)
            if existing:
                logger.info(
                    f"Missing-only mode: preserving {len(existing.grand_prix_weekends)} existing weekends"
                )
            else:
                logger.info(f"Missing-only mode: no existing {filename} found, fetching all")

        existing_by_name = {w.name: w for w in existing.grand_prix_weekends} if existing else {}
        preserved: List[Weekend] = []
        fetched: List[VideoItem] = []
        gp_delay = self.config.get('gp_delay_ms', 400) / 1000.0
        page_cap = self.config.get('gp_page_cap', 5)

        for name in names:
            known = existing_by_name.get(name)
            if known and known.videos:
                preserved.append(known)
                logger.info(f"Skipping fetch for {name} (already has {len(known.videos)} videos)")
                continue

            videos = await loop.run_in_executor(
                None,
                self.youtube_service.search_all,
                self.channel_id,
                f"{name} F1 highlights",
                page_cap,
            )
            fetched.extend(videos)
            logger.info(f"Found {len(videos)} videos for {name}")

            if gp_delay > 0:
                await asyncio.sleep(gp_delay)

        unique = dedupe_videos(fetched)
        logger.info(f"Total videos fetched: {len(fetched)}, unique after de-dupe: {len(unique)}")

        recaps = self.archive_filter.filter_videos(unique)
        logger.info(f"Filtered to recap videos: {len(recaps)}")

        grouped = grouper.select_season(grouper.group_by_name(recaps))
        merged = merger.merge_preserved_groups(grouped, preserved, prefer_preserved=True)
        merged = _in_name_order(merged, names)
        self._log_usage()

        artifact = ArchiveArtifact(merged, last_updated=_now(), year=str(self.target_year))
        if artifact.total_videos == 0:
            logger.warning(f"No archive videos found. Preserving existing {filename}.")
            return None

        self.store.write_archive(filename, artifact)
        logger.info(
            f"Organized into {len(merged)} Grand Prix weekends, "
            f"{artifact.total_videos} videos saved to {filename}"
        )
        return artifact

    # ----- calendar archive -----

    async def build_calendar_archive(self) -> Optional[ArchiveArtifact]:
        """Rebuild videos-{year}.json with one bucket per calendar weekend.

        Recent uploads are placed by publish date, accumulated with the
        persisted archive, then manual overrides are applied on top.
        """
        filename = archive_filename(self.target_year)
        calendar = self.calendar_service.load(self.target_year)
        if not calendar:
            raise ConfigurationError(
                f"No calendar found for {self.target_year}; add calendar{self.target_year}.json"
            )

        names = [entry.weekend_name(self.target_year) for entry in calendar]
        grouper = self._make_grouper(canonical_names=names)
        merger = ArchiveMerger(grouper)

        logger.info(f"Building {self.target_year} archive from {len(calendar)} calendar weekends")
        videos = dedupe_videos(await self._fetch_recent_uploads())
        recaps = self.recap_filter.filter_videos(videos)
        grouped = grouper.group_by_calendar(calendar, recaps)
        logger.info(
            f"Placed {sum(len(w.videos) for w in grouped)} of {len(recaps)} recap videos "
            f"into calendar weekends"
        )

        existing = self.store.load_archive(filename)
        existing_weekends = calendar_weekends(
            existing.grand_prix_weekends if existing else [], grouped, names
        )
        accumulated = _in_name_order(merger.merge_archives(existing_weekends, grouped), names)

        manual = []
        for weekend in await self.load_manual_overrides(grouper):
            if weekend.name in names:
                manual.append(weekend)
            else:
                logger.warning(
                    f"Manual weekend '{weekend.name}' is not on the {self.target_year} calendar, ignoring"
                )
        final = merger.merge_preserved_groups(
            accumulated, manual, prefer_preserved=self.config.get('prefer_manual', True)
        )
        self._log_usage()

        artifact = ArchiveArtifact(final, last_updated=_now(), year=str(self.target_year))
        if artifact.total_videos == 0 and existing and existing.total_videos > 0:
            logger.warning(f"Calendar build produced no videos. Preserving existing {filename}.")
            return None

        self.store.write_archive(filename, artifact)
        logger.info(f"Wrote {len(final)} weekends to {filename}, total videos: {artifact.total_videos}")
        return artifact

    async def load_manual_overrides(self, grouper: WeekendGrouper) -> List[Weekend]:
        """Read archive-{year}-manual.json and resolve every entry to full videos.

        Entries are ``{name, videos}`` where each video is a bare id or a
        ``{videoId, title, publishedAt, ...}`` object. Bare ids (and objects
        missing title or publish date) are looked up in batches of 50.
        """
        filename = manual_filename(self.target_year)
        payload = self.store.read_json(filename)
        if payload is None:
            return []

        try:
            raw_weekends = normalize_weekend_payload(payload)
        except ValueError as e:
            logger.warning(f"Ignoring {filename}: {e}")
            return []

        pending_ids: List[str] = []
        entries = []
        for raw in raw_weekends:
            if not raw.get('name'):
                continue
            name = grouper.resolve_canonical(with_season_year(str(raw['name']), self.target_year))
            refs = []
            for ref in raw.get('videos') or []:
                if isinstance(ref, str):
                    refs.append(ref)
                    pending_ids.append(ref)
                elif isinstance(ref, dict) and ref.get('videoId'):
                    video = VideoItem.from_dict(ref)
                    if video.title and video.published:
                        refs.append(video)
                    else:
                        refs.append(video.video_id)
                        pending_ids.append(video.video_id)
            entries.append((name, refs))

        lookup = await self._lookup_videos(dedupe_ids(pending_ids))

        weekends = []
        for name, refs in entries:
            videos = []
            for ref in refs:
                if isinstance(ref, VideoItem):
                    videos.append(ref)
                elif ref in lookup:
                    videos.append(lookup[ref])
                else:
                    logger.warning(f"Manual video {ref} for {name} not found on YouTube, skipping")
            weekends.append(Weekend(name=name, videos=dedupe_videos(videos)))

        logger.info(
            f"Loaded {sum(len(w.videos) for w in weekends)} manual videos "
            f"across {len(weekends)} weekends from {filename}"
        )
        return weekends

    async def _lookup_videos(self, video_ids: List[str]) -> Dict[str, VideoItem]:
        if not video_ids:
            return {}
        loop = asyncio.get_running_loop()
        found: Dict[str, VideoItem] = {}
        for start in range(0, len(video_ids), MAX_PAGE_SIZE):
            batch = video_ids[start:start + MAX_PAGE_SIZE]
            videos = await loop.run_in_executor(None, self.youtube_service.list_videos_by_ids, batch)
            found.update({video.video_id: video for video in videos})
        return found

    # ----- standings -----

    async def update_standings(self) -> bool:
        """Refresh standings{year}.json.

        Returns:
            False only when the fetch failed and no standings file could be
            kept or written
        """
        season = str(self.target_year)
        filename = standings_filename(self.target_year)
        loop = asyncio.get_running_loop()

        try:
            snapshot = await loop.run_in_executor(None, self.standings_service.fetch, season)
            payload = checked_payload(snapshot)
            self.store.write_json(filename, payload)
            logger.info(f"Saved standings to {self.store.path(filename)}")
            logger.info(
                f"seasonStarted={payload['seasonStarted']} drivers={len(payload['drivers'])} "
                f"constructors={len(payload['constructors'])}"
            )
            return True

        except (requests.RequestException, RetryableError, ValueError) as e:
            logger.error(f"Failed to fetch standings: {e}")

        if self.store.exists(filename):
            logger.warning("Using existing standings file; continuing without failing the workflow.")
            return True

        try:
            self.store.write_json(filename, checked_payload(default_snapshot(season)))
            logger.info(f"Wrote default standings payload to {self.store.path(filename)}")
            return True
        except OSError as e:
            logger.error(f"Could not write default standings payload: {e}")
            return False


def calendar_weekends(
    existing: Sequence[Weekend], grouped: Sequence[Weekend], names: Sequence[str]
) -> List[Weekend]:
    """Persisted weekends that belong on the calendar, ready to merge with fresh buckets.

    Weekends off the calendar (the Unknown bucket, name-extraction variants)
    are dropped. A video stays in at most one weekend: fresh placement by
    publish date wins, then the first persisted weekend holding it.
    """
    allowed = set(names)
    placed = {video_id: weekend.name for weekend in grouped for video_id in weekend.video_ids}
    seen = set()
    kept = []
    for weekend in existing:
        if weekend.name not in allowed:
            if weekend.videos:
                logger.info(f"Dropping '{weekend.name}' ({len(weekend.videos)} videos): not on the calendar")
            continue
        videos = []
        for video in weekend.videos:
            if placed.get(video.video_id, weekend.name) != weekend.name or video.video_id in seen:
                continue
            seen.add(video.video_id)
            videos.append(video)
        kept.append(Weekend(name=weekend.name, videos=videos, start_date=weekend.start_date))
    return kept


def dedupe_ids(video_ids: List[str]) -> List[str]:
    return list(dict.fromkeys(video_id for video_id in video_ids if video_id))
