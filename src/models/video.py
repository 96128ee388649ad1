"""Video-related data models."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime, or None if unparseable."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith('Z') or text.endswith('z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime the way the site expects (UTC, millisecond precision, Z)."""
    value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S.') + f"{value.microsecond // 1000:03d}Z"


def _best_thumbnail(thumbnails: Optional[Dict]) -> str:
    thumbnails = thumbnails or {}
    for size in ('high', 'default'):
        url = (thumbnails.get(size) or {}).get('url')
        if url:
            return url
    return ''


@dataclass(frozen=True)
class VideoItem:
    """One published YouTube video. Immutable once created."""

    video_id: str
    title: str
    published_at: str  # ISO-8601, as reported by the API
    description: str = ''
    thumbnail: str = ''

    @property
    def published(self) -> Optional[datetime]:
        return parse_timestamp(self.published_at)

    def to_dict(self) -> dict:
        """Convert video to its JSON artifact shape."""
        return {
            'videoId': self.video_id,
            'title': self.title,
            'description': self.description,
            'publishedAt': self.published_at,
            'thumbnail': self.thumbnail,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Optional['VideoItem']:
        """Create video from a persisted artifact entry. Returns None without a videoId."""
        if not isinstance(data, dict) or not data.get('videoId'):
            return None
        return cls(
            video_id=str(data['videoId']),
            title=data.get('title') or '',
            published_at=data.get('publishedAt') or '',
            description=data.get('description') or '',
            thumbnail=data.get('thumbnail') or '',
        )

    @classmethod
    def from_api_item(cls, item: dict) -> Optional['VideoItem']:
        """Normalize a raw YouTube Data API item.

        Handles the three shapes the client receives:
        search results (``id.videoId``), playlist items
        (``contentDetails.videoId``) and videos.list items (``id`` string).

        Returns:
            VideoItem, or None if the item has no video id or snippet
        """
        if not isinstance(item, dict):
            return None
        snippet = item.get('snippet')
        if not snippet:
            return None

        raw_id = item.get('id')
        details = item.get('contentDetails') or {}
        if isinstance(raw_id, dict):
            video_id = raw_id.get('videoId')
        elif isinstance(raw_id, str) and item.get('kind', 'youtube#video') == 'youtube#video':
            video_id = raw_id
        else:
            video_id = None
        video_id = (
            video_id
            or details.get('videoId')
            or (snippet.get('resourceId') or {}).get('videoId')
        )
        if not video_id:
            return None

        return cls(
            video_id=video_id,
            title=snippet.get('title') or '',
            description=snippet.get('description') or '',
            published_at=details.get('videoPublishedAt') or snippet.get('publishedAt') or '',
            thumbnail=_best_thumbnail(snippet.get('thumbnails')),
        )
