"""YouTube Data API v3 client for fetching Formula 1 channel uploads."""

import json
import logging
import time
from collections import Counter
from typing import Dict, Iterable, List, Optional

import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from models.video import VideoItem
from utils.retry import (
    retry_api_call,
    APIRateLimitError,
    APIRequestError,
    ConfigurationError,
    NetworkError,
    QuotaExhaustedError,
    TemporaryServiceError,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50
QUOTA_REASONS = ('quotaExceeded', 'dailyLimitExceeded')
RATE_LIMIT_REASONS = ('rateLimitExceeded', 'userRateLimitExceeded')


def _error_reason(error: HttpError) -> Optional[str]:
    """First ``reason`` from a Google API error body, if any."""
    try:
        content = error.content.decode('utf-8') if isinstance(error.content, bytes) else error.content
        errors = json.loads(content)['error']['errors']
        return errors[0].get('reason') if errors else None
    except (ValueError, KeyError, IndexError, TypeError, AttributeError):
        return None


def _error_message(error: HttpError) -> str:
    try:
        content = error.content.decode('utf-8') if isinstance(error.content, bytes) else error.content
        return json.loads(content)['error']['message']
    except (ValueError, KeyError, TypeError, AttributeError):
        return str(error)


class YouTubeService:
    """Quota-aware client for the YouTube Data API.

    Transient failures (network, 5xx, 429, rate-limit 403s) are retried with
    exponential backoff; quota exhaustion fails fast.
    """

    def __init__(
        self,
        api_key: str,
        request_delay_ms: int = 0,
        timeout_seconds: float = 30.0,
        max_retries: int = 5,
        retry_base_delay: float = 0.5,
        service=None,
    ):
        """Initialize YouTube service.

        Args:
            api_key: YouTube Data API key
            request_delay_ms: Pause before every request
            timeout_seconds: Per-request socket timeout
            max_retries: Retries for transient failures
            retry_base_delay: First backoff delay in seconds
            service: Prebuilt API resource (tests inject a fake here)

        Raises:
            ConfigurationError: If no API key is given
        """
        if not api_key:
            raise ConfigurationError(
                "YouTube API key not found. Please set YOUTUBE_API_KEY environment variable."
            )

        self.request_delay = max(0, request_delay_ms) / 1000.0
        self.call_count = 0
        self.endpoint_counts: Counter = Counter()

        if service is None:
            service = build(
                "youtube",
                "v3",
                developerKey=api_key,
                http=httplib2.Http(timeout=timeout_seconds),
                cache_discovery=False,
            )
        self.service = service

        self._execute = retry_api_call(max_retries=max_retries, base_delay=retry_base_delay)(
            self._execute_once
        )

    def usage_summary(self) -> Dict:
        """API calls made so far, busiest endpoint first."""
        return {
            "apiCalls": self.call_count,
            "byEndpoint": [
                {"endpoint": endpoint, "count": count}
                for endpoint, count in self.endpoint_counts.most_common()
            ],
        }

    def _request(self, endpoint: str, **params) -> Dict:
        params = {k: v for k, v in params.items() if v is not None}
        return self._execute(endpoint, params)

    def _execute_once(self, endpoint: str, params: Dict) -> Dict:
        if self.request_delay > 0:
            time.sleep(self.request_delay)

        self.call_count += 1
        self.endpoint_counts[endpoint] += 1

        try:
            resource = getattr(self.service, endpoint)()
            return resource.list(**params).execute() or {}

        except HttpError as e:
            status = getattr(e.resp, "status", None)
            status = int(status) if status is not None else None
            reason = _error_reason(e)
            message = _error_message(e)

            if reason in QUOTA_REASONS:
                raise QuotaExhaustedError(reason, message)
            if status is not None and status >= 500:
                raise TemporaryServiceError(f"YouTube {endpoint} returned {status}: {message}")
            if status == 429 or (status == 403 and reason in RATE_LIMIT_REASONS):
                raise APIRateLimitError(f"YouTube {endpoint} rate limited ({reason or status}): {message}")
            raise APIRequestError(message, status=status, reason=reason)

        except (httplib2.HttpLib2Error, OSError) as e:
            raise NetworkError(f"Network error calling YouTube {endpoint}: {e}")

    def get_uploads_playlist_id(self, channel_id: str) -> str:
        """Resolve a channel's uploads playlist."""
        data = self._request(
            "channels",
            part="contentDetails",
            id=channel_id,
            fields="items(contentDetails/relatedPlaylists/uploads)",
            maxResults=1,
        )
        items = data.get("items") or []
        uploads = (
            ((items[0].get("contentDetails") or {}).get("relatedPlaylists") or {}).get("uploads")
            if items else None
        )
        if not uploads:
            raise APIRequestError(f"Failed to resolve uploads playlist for channelId={channel_id}")
        return uploads

    def list_playlist_items(
        self, playlist_id: str, page_token: Optional[str] = None, max_results: int = MAX_PAGE_SIZE
    ) -> Dict:
        """Fetch one page of a playlist.

        Returns:
            {"items": [...], "nextPageToken": str or None}
        """
        data = self._request(
            "playlistItems",
            part="snippet,contentDetails",
            playlistId=playlist_id,
            maxResults=min(max_results, MAX_PAGE_SIZE),
            pageToken=page_token,
            fields=(
                "nextPageToken,items(snippet(title,description,thumbnails,resourceId/videoId),"
                "contentDetails(videoId,videoPublishedAt))"
            ),
        )
        return {"items": data.get("items") or [], "nextPageToken": data.get("nextPageToken")}

    def search_channel(
        self, channel_id: str, query: Optional[str] = None, page_token: Optional[str] = None
    ) -> Dict:
        """Fetch one page of channel search results, newest first."""
        data = self._request(
            "search",
            part="snippet",
            channelId=channel_id,
            q=query,
            order="date",
            type="video",
            maxResults=MAX_PAGE_SIZE,
            pageToken=page_token,
        )
        return {"items": data.get("items") or [], "nextPageToken": data.get("nextPageToken")}

    def list_videos_by_ids(self, video_ids: Iterable[str]) -> List[VideoItem]:
        """Look up full metadata for up to 50 video ids."""
        ids = [video_id for video_id in video_ids if video_id]
        if not ids:
            return []
        if len(ids) > MAX_PAGE_SIZE:
            raise ValueError(f"videos.list supports up to {MAX_PAGE_SIZE} ids per call; got {len(ids)}")

        data = self._request(
            "videos",
            part="snippet",
            id=",".join(ids),
            fields="items(id,snippet(title,description,publishedAt,thumbnails))",
            maxResults=MAX_PAGE_SIZE,
        )
        return self._parse_items(data.get("items") or [])

    def fetch_recent_uploads(self, channel_id: str, max_results: int = 150) -> List[VideoItem]:
        """Walk the channel's uploads playlist, newest first, up to max_results videos."""
        playlist_id = self.get_uploads_playlist_id(channel_id)
        page_cap = max(1, -(-max_results // MAX_PAGE_SIZE))

        videos: List[VideoItem] = []
        page_token = None
        for page in range(1, page_cap + 1):
            response = self.list_playlist_items(playlist_id, page_token=page_token)
            videos.extend(self._parse_items(response["items"]))
            page_token = response["nextPageToken"]
            logger.debug(f"Uploads page {page}: {len(videos)} videos so far")
            if not page_token or len(videos) >= max_results:
                break

        return videos[:max_results]

    def search_all(self, channel_id: str, query: str, page_cap: int = 5) -> List[VideoItem]:
        """Run a channel search across at most page_cap pages."""
        logger.info(f"Searching YouTube for: '{query}' (pages up to {page_cap})")

        videos: List[VideoItem] = []
        page_token = None
        for _ in range(max(1, page_cap)):
            response = self.search_channel(channel_id, query=query, page_token=page_token)
            videos.extend(self._parse_items(response["items"]))
            page_token = response["nextPageToken"]
            if not page_token:
                break

        return videos

    def _parse_items(self, items: List[Dict]) -> List[VideoItem]:
        videos = []
        for item in items:
            video = VideoItem.from_api_item(item)
            if video:
                videos.append(video)
            else:
                logger.debug("Skipping API item without video id or snippet")
        return videos
