"""JSON artifact persistence for the site's data directory."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from models.weekend import ArchiveArtifact

logger = logging.getLogger(__name__)


class ArtifactStore:
    """Reads and atomically writes the JSON files served from the data directory."""

    def __init__(self, data_dir: str):
        """Initialize artifact store.

        Args:
            data_dir: Directory the site serves its JSON data from
        """
        self.data_dir = Path(data_dir)

    def path(self, filename: str) -> Path:
        return self.data_dir / filename

    def exists(self, filename: str) -> bool:
        return self.path(filename).is_file()

    def read_json(self, filename: str) -> Optional[Any]:
        """Load a JSON file.

        Returns:
            Parsed JSON, or None if the file is missing or unreadable
        """
        file_path = self.path(filename)
        if not file_path.exists():
            return None
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read {file_path}: {e}. Treating as empty.")
            return None

    def write_json(self, filename: str, payload: Any) -> Path:
        """Write JSON via a temp file and rename, so readers never see a partial file."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        file_path = self.path(filename)

        fd, temp_path = tempfile.mkstemp(prefix=f".{filename}.", suffix=".tmp", dir=self.data_dir)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.write('\n')
            os.replace(temp_path, file_path)
        except BaseException:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise

        logger.debug(f"Wrote {file_path}")
        return file_path

    def load_archive(self, filename: str) -> Optional[ArchiveArtifact]:
        """Load a video artifact of either accepted shape.

        Returns:
            ArchiveArtifact, or None if the file is missing or malformed
        """
        payload = self.read_json(filename)
        if payload is None:
            return None
        try:
            return ArchiveArtifact.from_payload(payload)
        except ValueError as e:
            logger.warning(f"Existing {filename} unreadable ({e}), rebuilding from scratch")
            return None

    def write_archive(self, filename: str, artifact: ArchiveArtifact) -> Path:
        data = artifact.to_dict()
        expected = sum(len(w['videos']) for w in data['grandPrixWeekends'])
        if data['totalVideos'] != expected:
            raise ValueError(f"totalVideos {data['totalVideos']} does not match {expected} videos")
        return self.write_json(filename, data)
