"""
Filesystem store for published artifacts (JSON, one file per title).
"""
import json
import logging
from datetime import datetime
from pathlib import Path

from ..pipeline.models import Artifact
from ..pipeline.lookups import sanitize_filename


class ArtifactStore:
    """Writes `<output_dir>/<sanitized title>.json`."""

    def __init__(self, output_dir: str):
        self.output_dir = Path(output_dir)
        self.logger = logging.getLogger(self.__class__.__name__)

    def path_for(self, artifact: Artifact) -> Path:
        return self.output_dir / f"{sanitize_filename(artifact.title)}.json"

    def save(self, artifact: Artifact) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)

        record = artifact.to_dict()
        record['stored_at'] = datetime.now().isoformat()

        path = self.path_for(artifact)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(record, f, ensure_ascii=False, indent=2)

        self.logger.debug(f"Stored artifact for '{artifact.title}' at {path}")
        return path
