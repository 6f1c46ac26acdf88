import os
import json
import logging
from typing import List, Set

logger = logging.getLogger(__name__)

COMPLETED_TOPICS_FILE = "completed_topics.json"


class ProgressTracker:
    """Topics the learner has marked complete, mirrored to a JSON file"""

    def __init__(self, storage_dir: str = "progress"):
        self.storage_dir = storage_dir
        self._ensure_storage_dir()
        self._completed: Set[str] = set(self.load_completed())

    def _ensure_storage_dir(self):
        """Ensure the storage directory exists"""
        if not os.path.exists(self.storage_dir):
            os.makedirs(self.storage_dir)

    def _get_progress_file(self) -> str:
        return os.path.join(self.storage_dir, COMPLETED_TOPICS_FILE)

    def load_completed(self) -> List[str]:
        """Read the stored topic ids; a missing or broken file counts as empty"""
        try:
            file_path = self._get_progress_file()
            if not os.path.exists(file_path):
                return []

            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)

            if not isinstance(data, list):
                logger.warning(f"Ignoring progress file with unexpected content: {file_path}")
                return []

            logger.info(f"Loaded {len(data)} completed topics")
            return [str(topic_id) for topic_id in data]

        except Exception as e:
            logger.error(f"Error loading progress: {str(e)}")
            return []

    def serialize(self) -> str:
        return json.dumps(sorted(self._completed))

    def save(self) -> None:
        try:
            with open(self._get_progress_file(), 'w', encoding='utf-8') as f:
                f.write(self.serialize())
            logger.info(f"Progress saved: {len(self._completed)} topics completed")
        except Exception as e:
            logger.error(f"Error saving progress: {str(e)}")
            raise

    def is_completed(self, topic_id: str) -> bool:
        return topic_id in self._completed

    def toggle(self, topic_id: str) -> bool:
        """Flip a topic's completion flag and persist; returns the new flag"""
        if topic_id in self._completed:
            self._completed.discard(topic_id)
        else:
            self._completed.add(topic_id)
        self.save()
        return topic_id in self._completed

    @property
    def completed(self) -> List[str]:
        return sorted(self._completed)

    def progress_percentage(self, total: int) -> int:
        if total <= 0:
            return 0
        return round(len(self._completed) / total * 100)
