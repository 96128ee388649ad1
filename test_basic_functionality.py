#!/usr/bin/env python3
"""Basic functionality test for the F1 recap build pipeline."""

import asyncio
import json
import sys
from pathlib import Path
from unittest.mock import MagicMock

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from recap_builder import RecapBuilder
from services.youtube_service import YouTubeService
from utils.config import setup_logging


def _playlist_item(video_id, title, published_at):
    return {
        'snippet': {
            'title': title,
            'description': 'Formula 1 highlights',
            'thumbnails': {'default': {'url': f'https://i.ytimg.com/vi/{video_id}/default.jpg'}},
        },
        'contentDetails': {'videoId': video_id, 'videoPublishedAt': published_at},
    }


def test_basic_functionality(tmp_path):
    """Run the current-feed build end to end against a mocked YouTube API."""
    setup_logging("INFO")

    api = MagicMock()
    api.channels.return_value.list.return_value.execute.return_value = {
        'items': [{'contentDetails': {'relatedPlaylists': {'uploads': 'UUofficial'}}}]
    }
    api.playlistItems.return_value.list.return_value.execute.return_value = {
        'items': [
            _playlist_item('race', "Race Highlights | 2025 Spanish Grand Prix", '2025-06-01T15:30:00Z'),
            _playlist_item('quali', "Qualifying Highlights | 2025 Spanish Grand Prix", '2025-05-31T16:00:00Z'),
            _playlist_item('react', "Drivers React After The Race | 2025 Spanish Grand Prix", '2025-06-01T17:00:00Z'),
            _playlist_item('fp1', "FP1 Highlights | 2025 Spanish Grand Prix", '2025-05-30T13:00:00Z'),
        ],
    }

    test_config = {
        'youtube_api_key': 'test_key',
        'channel_id': 'UCB_qr75-ydFVKSF9Dmo6izg',
        'target_year': 2025,
        'latest_window': 3,
        'max_results': 150,
        'session_rules': 'standard',
        'data_dir': str(tmp_path / 'public' / 'data'),
    }

    youtube = YouTubeService(test_config['youtube_api_key'], retry_base_delay=0, service=api)
    builder = RecapBuilder(test_config, youtube_service=youtube)

    feed = asyncio.run(builder.build_current_feed())
    assert feed is not None

    written = json.loads((tmp_path / 'public' / 'data' / 'videos.json').read_text(encoding='utf-8'))
    assert written['totalVideos'] == 3
    weekend = written['grandPrixWeekends'][0]
    assert weekend['name'] == "2025 Spanish Grand Prix"
    assert [v['videoId'] for v in weekend['videos']] == ['fp1', 'quali', 'race']
    assert weekend['latestDate'] == '2025-06-01T15:30:00.000Z'

    archive = json.loads((tmp_path / 'public' / 'data' / 'videos-2025.json').read_text(encoding='utf-8'))
    assert archive['year'] == '2025'
    assert archive['totalVideos'] == 3

    assert youtube.usage_summary()['apiCalls'] == 2


if __name__ == "__main__":
    import tempfile

    with tempfile.TemporaryDirectory() as tmp:
        test_basic_functionality(Path(tmp))
    print("✅ Basic functionality test passed!")
