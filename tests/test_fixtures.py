"""
Test fixtures and sample data for Power-Up Quiz tests.
"""
import json
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from unittest.mock import Mock, AsyncMock
import discord

from powerquiz.best_score import PersistenceError, ScoreBackend
from powerquiz.models import GameConfig, Question, QuestionSet


class SequenceRandom:
    """Random source that replays a fixed sequence of draws."""

    def __init__(self, values: Sequence[float]):
        self.values = list(values)
        self.calls = 0

    def random(self) -> float:
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value


class NeverRandom(SequenceRandom):
    """Random source whose draws never grant a power-up."""

    def __init__(self):
        super().__init__([0.999])


class FailingScoreBackend(ScoreBackend):
    """Score backend that fails on every read and write."""

    def load(self):
        raise PersistenceError("storage unavailable")

    def save(self, score: int) -> None:
        raise PersistenceError("storage unavailable")


class TestFixtures:
    """Centralized test fixtures for all test modules."""

    @staticmethod
    def create_question(
        question_id: str = "q1",
        correct_option_index: int = 0,
        base_points: int = 100,
        options: Optional[Sequence[str]] = None
    ) -> Question:
        return Question(
            id=question_id,
            prompt=f"Question {question_id}?",
            options=tuple(options or ("Alpha", "Bravo", "Charlie", "Delta")),
            correct_option_index=correct_option_index,
            base_points=base_points,
        )

    @staticmethod
    def create_question_set(count: int = 5, title: str = "Test Quiz") -> QuestionSet:
        """Create a question set whose correct answer cycles through A-D."""
        questions = tuple(
            TestFixtures.create_question(f"q{i + 1}", correct_option_index=i % 4)
            for i in range(count)
        )
        return QuestionSet(
            title=title,
            description="Questions for tests",
            questions=questions,
            source_id="test_quiz.json",
        )

    @staticmethod
    def create_game_config(**overrides) -> GameConfig:
        return GameConfig(**overrides)

    @staticmethod
    def create_valid_quiz_json(count: int = 3) -> Dict:
        """Create a valid question-set document as produced by the generator."""
        return {
            "title": "Geography Basics",
            "description": "Capitals and continents",
            "questions": [
                {
                    "id": f"q{i + 1}",
                    "question": f"Geography question {i + 1}?",
                    "options": ["Paris", "Tokyo", "Lima", "Cairo"],
                    "correctAnswer": i % 4,
                    "difficulty": "easy",
                    "points": 100,
                    "explanation": "Because it is."
                }
                for i in range(count)
            ],
            "sourceDocument": "geography.pdf"
        }

    @staticmethod
    def create_invalid_quiz_json_structures() -> List[Dict]:
        """Create various invalid question-set documents."""
        return [
            # Missing 'questions' key
            {"title": "No questions"},
            # 'questions' is not a list
            {"title": "Bad", "questions": "not a list"},
            # Empty question list
            {"title": "Empty", "questions": []},
            # Three options
            {
                "title": "Short",
                "questions": [
                    {"question": "Test?", "options": ["a", "b", "c"], "correctAnswer": 0}
                ]
            },
            # Correct answer out of range
            {
                "title": "Out of range",
                "questions": [
                    {"question": "Test?", "options": ["a", "b", "c", "d"], "correctAnswer": 4}
                ]
            },
            # Missing question text
            {
                "title": "No text",
                "questions": [
                    {"options": ["a", "b", "c", "d"], "correctAnswer": 1}
                ]
            },
        ]

    @staticmethod
    def create_temp_quiz_files(temp_dir: str) -> Dict[str, Path]:
        """Create temporary question-set files for testing."""
        quiz_files = {}

        valid_file = Path(temp_dir) / "valid_quiz.json"
        with open(valid_file, 'w') as f:
            json.dump(TestFixtures.create_valid_quiz_json(), f)
        quiz_files["valid"] = valid_file

        large_file = Path(temp_dir) / "large_quiz.json"
        with open(large_file, 'w') as f:
            json.dump(TestFixtures.create_valid_quiz_json(15), f)
        quiz_files["large"] = large_file

        invalid_file = Path(temp_dir) / "invalid.json"
        with open(invalid_file, 'w') as f:
            f.write("{ invalid json }")
        quiz_files["invalid"] = invalid_file

        invalid_structure_file = Path(temp_dir) / "invalid_structure.json"
        with open(invalid_structure_file, 'w') as f:
            json.dump(TestFixtures.create_invalid_quiz_json_structures()[3], f)
        quiz_files["invalid_structure"] = invalid_structure_file

        non_json_file = Path(temp_dir) / "not_a_quiz.txt"
        with open(non_json_file, 'w') as f:
            f.write("This is not a JSON file")
        quiz_files["non_json"] = non_json_file

        return quiz_files


class MockDiscordObjects:
    """Mock Discord objects for testing bot functionality."""

    @staticmethod
    def create_mock_interaction(channel_id: int = 12345, user_id: int = 67890) -> Mock:
        """Create mock Discord interaction."""
        interaction = Mock(spec=discord.Interaction)
        interaction.channel_id = channel_id
        interaction.user = Mock()
        interaction.user.id = user_id
        interaction.user.mention = f"<@{user_id}>"
        interaction.channel = MockDiscordObjects.create_mock_channel(channel_id)
        interaction.response = Mock()
        interaction.response.is_done.return_value = False
        interaction.response.send_message = AsyncMock()
        interaction.response.defer = AsyncMock()
        interaction.followup = Mock()
        interaction.followup.send = AsyncMock()
        return interaction

    @staticmethod
    def create_mock_channel(channel_id: int = 12345) -> Mock:
        """Create mock Discord channel whose send returns a mock message."""
        channel = Mock(spec=discord.TextChannel)
        channel.id = channel_id
        channel.send = AsyncMock(return_value=MockDiscordObjects.create_mock_message())
        return channel

    @staticmethod
    def create_mock_message(message_id: int = 11111) -> Mock:
        """Create mock Discord message."""
        message = Mock(spec=discord.Message)
        message.id = message_id
        message.edit = AsyncMock()
        message.delete = AsyncMock()
        return message


class ErrorScenarios:
    """Common error scenarios for testing."""

    @staticmethod
    def create_http_exception(status: int = 500, message: str = "HTTP error") -> discord.HTTPException:
        response = Mock()
        response.status = status
        response.reason = message
        return discord.HTTPException(response, message)
