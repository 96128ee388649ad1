"""Configuration loading, validation and logging setup for f1-recaps."""

import os
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional
from pathlib import Path
from dotenv import load_dotenv
from rich.logging import RichHandler

from utils.retry import ConfigurationError

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / '.env')

DEFAULT_CHANNEL_ID = 'UCB_qr75-ydFVKSF9Dmo6izg'  # Formula 1 official channel
DEFAULT_STANDINGS_API = 'https://api.jolpi.ca/ergast/f1'


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


def load_config() -> Dict:
    """Load configuration from environment variables."""
    def resolve_path(path: Optional[str], default_relative: str) -> str:
        if not path:
            return str(PROJECT_ROOT / default_relative)
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    max_results = _env_int('MAX_RESULTS', 150)

    config = {
        # YouTube Data API
        'youtube_api_key': os.getenv('YOUTUBE_API_KEY'),
        'channel_id': os.getenv('YOUTUBE_CHANNEL_ID', DEFAULT_CHANNEL_ID),
        'request_delay_ms': _env_int('YT_REQUEST_DELAY_MS', 0),
        'timeout_seconds': _env_float('YT_TIMEOUT_SECONDS', 30.0),
        'max_retries': _env_int('YT_MAX_RETRIES', 5),
        'retry_base_delay': _env_float('YT_RETRY_BASE_DELAY', 0.5),

        # Season and feed shape
        'target_year': _env_int('TARGET_YEAR', datetime.now(timezone.utc).year),
        'latest_window': _env_int('LATEST_WINDOW', 3),
        'max_results': max_results,

        # Season archive
        'gp_page_cap': _env_int('YT_PAGE_CAP', 5),
        'gp_delay_ms': _env_int('YT_GP_DELAY_MS', 400),
        'missing_only': _env_bool('FETCH_MISSING_ONLY'),
        'prefer_manual': _env_bool('PREFER_MANUAL', True),

        # Classification / grouping
        'session_rules': os.getenv('SESSION_RULES', 'standard'),
        'window_before_days': _env_int('CALENDAR_WINDOW_BEFORE_DAYS', 1),
        'window_after_days': _env_int('CALENDAR_WINDOW_AFTER_DAYS', 3),

        # Output
        'data_dir': resolve_path(os.getenv('DATA_DIR'), 'public/data'),

        # Standings
        'standings_api_base': os.getenv('STANDINGS_API_BASE', DEFAULT_STANDINGS_API).rstrip('/'),
        'standings_max_retries': max(1, _env_int('STANDINGS_MAX_RETRIES', 3)),
        'standings_retry_delay_ms': max(0, _env_int('STANDINGS_RETRY_DELAY_MS', 1500)),
        'standings_timeout_seconds': _env_float('STANDINGS_TIMEOUT_SECONDS', 15.0),

        # Schedule gate
        'force_run': _env_bool('FORCE_RUN'),
        'manual_run': _env_bool('MANUAL_RUN'),
        'github_output': os.getenv('GITHUB_OUTPUT'),

        # Logging
        'log_level': os.getenv('LOG_LEVEL', 'INFO'),
        'log_file': os.getenv('LOG_FILE'),
    }

    return config


def validate_config(config: Dict, require_youtube: bool = True) -> List[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if require_youtube and not config.get('youtube_api_key'):
        errors.append("YouTube API key not found. Please set YOUTUBE_API_KEY environment variable.")

    if require_youtube and not config.get('channel_id'):
        errors.append("YOUTUBE_CHANNEL_ID must not be empty")

    year = config.get('target_year')
    if not isinstance(year, int) or not 1950 <= year <= 2100:
        errors.append(f"TARGET_YEAR must be a four-digit season year, got {year!r}")

    if config.get('latest_window', 0) < 1:
        errors.append("LATEST_WINDOW must be at least 1")

    if config.get('window_before_days', 0) < 0 or config.get('window_after_days', 0) < 0:
        errors.append("Calendar window offsets must not be negative")

    if config.get('session_rules') not in ('standard', 'extended'):
        errors.append("SESSION_RULES must be 'standard' or 'extended'")

    data_dir = config.get('data_dir')
    if data_dir:
        try:
            Path(data_dir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Cannot create data directory: {e}")
    else:
        errors.append("DATA_DIR is required")

    return errors


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Set up logging configuration with Rich console output."""
    logging.root.handlers.clear()

    rich_handler = RichHandler(
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False  # Titles contain brackets that Rich would treat as markup
    )
    handlers: List[logging.Handler] = [rich_handler]

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        handlers=handlers,
        format="%(message)s"
    )

    noisy_loggers = [
        'googleapiclient.discovery',
        'googleapiclient.discovery_cache',
        'httplib2',
        'urllib3.connectionpool',
        'requests.packages.urllib3.connectionpool'
    ]

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
