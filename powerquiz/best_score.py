"""
Best-score persistence for the Power-Up Quiz bot.
A single high-score integer kept behind a swappable backend.
"""
import json
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised by a score backend when it cannot read or write."""
    pass


class ScoreBackend:
    """Interface for best-score storage backends."""

    def load(self) -> Optional[int]:
        """
        Load the stored best score.

        Returns:
            Stored score, or None if nothing was ever stored

        Raises:
            PersistenceError: If the storage cannot be read
        """
        raise NotImplementedError

    def save(self, score: int) -> None:
        """
        Store a new best score.

        Raises:
            PersistenceError: If the storage cannot be written
        """
        raise NotImplementedError


class MemoryScoreBackend(ScoreBackend):
    """Keeps the best score in memory for the lifetime of the process."""

    def __init__(self, initial: Optional[int] = None):
        self._score = initial

    def load(self) -> Optional[int]:
        return self._score

    def save(self, score: int) -> None:
        self._score = score


class JsonFileScoreBackend(ScoreBackend):
    """Stores the best score in a small JSON document on disk."""

    KEY = "best_score"

    def __init__(self, file_path: str = "./data/best_score.json"):
        self.file_path = Path(file_path)

    def load(self) -> Optional[int]:
        if not self.file_path.exists():
            return None
        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Invalid JSON in {self.file_path}: {e}") from e
        except UnicodeDecodeError as e:
            raise PersistenceError(f"Invalid encoding in {self.file_path}: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Failed to read {self.file_path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get(self.KEY), int):
            raise PersistenceError(f"Unexpected best score document in {self.file_path}")
        return data[self.KEY]

    def save(self, score: int) -> None:
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.file_path, 'w', encoding='utf-8') as f:
                json.dump({self.KEY: score}, f)
        except OSError as e:
            raise PersistenceError(f"Failed to write {self.file_path}: {e}") from e


class BestScoreStore:
    """
    Reads and records the best score.

    Backend failures never reach the caller: a failed read counts as no
    score on record and a failed write reports that nothing was recorded.
    """

    def __init__(self, backend: Optional[ScoreBackend] = None):
        self.logger = logging.getLogger(__name__)
        self.backend = backend or MemoryScoreBackend()

    def read(self) -> int:
        """
        Get the stored best score.

        Returns:
            Best score, or 0 if none was stored or the backend failed
        """
        try:
            score = self.backend.load()
        except PersistenceError as e:
            self.logger.error(
                f"Failed to read best score: {e}",
                extra={'event_type': 'best_score_read_failed'}
            )
            return 0
        return score if score is not None else 0

    def record(self, score: int) -> bool:
        """
        Record a finished session's score if it beats the stored one.

        Args:
            score: Final score of the session

        Returns:
            True if the score is a new best and was stored, False otherwise
        """
        try:
            current = self.backend.load()
            if current is not None and score <= current:
                return False
            if current is None and score <= 0:
                return False
            self.backend.save(score)
        except PersistenceError as e:
            self.logger.error(
                f"Failed to record best score {score}: {e}",
                extra={'event_type': 'best_score_record_failed', 'score': score}
            )
            return False

        self.logger.info(
            f"New best score recorded: {score}",
            extra={'event_type': 'best_score_recorded', 'score': score, 'previous': current}
        )
        return True
