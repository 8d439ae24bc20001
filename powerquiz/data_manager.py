"""
Data manager for question-set files and question-set validation.

Question sets arrive as the JSON documents produced by the quiz generation
service: a title, a description and a list of four-option questions.
Difficulty tiers and base points are always re-derived from position.
"""
import json
import os
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional
from pathlib import Path

from .models import GameConfig, Question, QuestionSet
from .scoring import get_question_difficulty, points_for_tier

logger = logging.getLogger(__name__)

OPTIONS_PER_QUESTION = 4
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB


class InputError(Exception):
    """Raised when a question set is malformed."""
    pass


def validate_question_set(question_set: QuestionSet, config: Optional[GameConfig] = None) -> QuestionSet:
    """
    Validate a question set and derive tiers and points from position.

    Args:
        question_set: Question set from the ingestion step
        config: Game configuration holding tier thresholds and points

    Returns:
        New QuestionSet with every question's tier and base points assigned

    Raises:
        InputError: If the set is empty or a question is malformed
    """
    if question_set is None or not question_set.questions:
        raise InputError("Question set must contain at least one question")

    normalized = []
    for index, question in enumerate(question_set.questions):
        if len(question.options) != OPTIONS_PER_QUESTION:
            raise InputError(
                f"Question {index} ({question.id}) must have exactly {OPTIONS_PER_QUESTION} options, "
                f"got {len(question.options)}"
            )
        if not isinstance(question.correct_option_index, int) or isinstance(question.correct_option_index, bool):
            raise InputError(f"Question {index} ({question.id}) correct option index must be an integer")
        if not 0 <= question.correct_option_index < len(question.options):
            raise InputError(
                f"Question {index} ({question.id}) correct option index "
                f"{question.correct_option_index} is out of range"
            )

        tier = get_question_difficulty(index, config)
        normalized.append(replace(
            question,
            options=tuple(question.options),
            difficulty_tier=tier,
            base_points=points_for_tier(tier, config),
        ))

    return replace(question_set, questions=tuple(normalized))


def parse_question_set(data: Any, source_id: str, config: Optional[GameConfig] = None) -> QuestionSet:
    """
    Parse a generated quiz document into a validated QuestionSet.

    Expected structure:
    {
        "title": str,
        "description": str,            # Optional
        "questions": [
            {
                "id": str,             # Optional, defaults to q<n>
                "question": str,
                "options": [str, str, str, str],
                "correctAnswer": int,
                "explanation": str     # Optional
            }
        ]
    }

    Args:
        data: Parsed JSON document
        source_id: Identifier of the document the questions came from
        config: Game configuration used for tier assignment

    Returns:
        Validated QuestionSet

    Raises:
        InputError: If the document does not have the expected structure
    """
    if not isinstance(data, dict):
        raise InputError("Quiz data must be a JSON object")

    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        raise InputError("Quiz data must contain a non-empty 'title'")

    description = data.get("description", "")
    if not isinstance(description, str):
        raise InputError("'description' must be a string")

    raw_questions = data.get("questions")
    if not isinstance(raw_questions, list):
        raise InputError("'questions' value must be an array")

    questions = []
    for i, question_data in enumerate(raw_questions):
        if not isinstance(question_data, dict):
            raise InputError(f"Question {i} must be an object")

        prompt = question_data.get("question")
        if not isinstance(prompt, str) or not prompt.strip():
            raise InputError(f"Question {i} missing 'question' field")

        options = question_data.get("options")
        if not isinstance(options, list) or not all(isinstance(option, str) for option in options):
            raise InputError(f"Question {i} 'options' field must be an array of strings")

        correct_answer = question_data.get("correctAnswer")
        if not isinstance(correct_answer, int) or isinstance(correct_answer, bool):
            raise InputError(f"Question {i} 'correctAnswer' field must be an integer")

        explanation = question_data.get("explanation") or None
        if explanation is not None and not isinstance(explanation, str):
            raise InputError(f"Question {i} 'explanation' field must be a string")

        questions.append(Question(
            id=str(question_data.get("id") or f"q{i + 1}"),
            prompt=prompt,
            options=tuple(options),
            correct_option_index=correct_answer,
            explanation=explanation,
        ))

    question_set = QuestionSet(
        title=title,
        description=description,
        questions=tuple(questions),
        source_id=str(data.get("sourceDocument") or source_id),
    )
    return validate_question_set(question_set, config)


class DataManager:
    """Manages loading and validation of question-set JSON files."""

    def __init__(self, quiz_directory: str = "./quizzes/", config: Optional[GameConfig] = None):
        """
        Initialize DataManager with quiz directory path.

        Args:
            quiz_directory: Path to directory containing question-set files
            config: Game configuration used for tier assignment
        """
        self.quiz_directory = Path(quiz_directory)
        self.config = config
        self.loaded_quizzes: Dict[str, QuestionSet] = {}
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []
        self.sample_quiz_created = False

    def load_quiz_files(self) -> Dict[str, QuestionSet]:
        """
        Load all JSON question sets from the quiz directory.

        Files that fail to load are skipped and their errors kept for
        user feedback.

        Returns:
            Dictionary mapping quiz names to QuestionSet objects
        """
        self.loaded_quizzes.clear()
        self.load_errors.clear()
        self.sample_quiz_created = False

        directory_result = self._ensure_quiz_directory()
        if not directory_result['success']:
            self.load_errors.append(directory_result['error'])
            return self.loaded_quizzes

        scan_result = self._scan_quiz_files()
        if not scan_result['success']:
            self.load_errors.append(scan_result['error'])
            return self.loaded_quizzes

        json_files = scan_result['files']

        if not json_files:
            self.logger.warning(f"No JSON files found in {self.quiz_directory}")
            self.load_errors.append(f"No quiz files found in {self.quiz_directory}")
            return self._create_sample_quiz()

        successful_loads = 0
        for json_file in json_files:
            load_result = self._load_quiz_file_safely(json_file)
            if load_result['success']:
                successful_loads += 1
            else:
                self.load_errors.append(f"{json_file.name}: {load_result['error']}")

        if successful_loads == 0:
            self.logger.error("No quiz files could be loaded successfully")
        else:
            self.logger.info(f"Successfully loaded {successful_loads} quiz files")
        if self.load_errors:
            self.logger.warning(f"Encountered {len(self.load_errors)} loading errors")

        return self.loaded_quizzes

    def get_available_quizzes(self) -> List[str]:
        """
        Get list of available quiz names.

        Returns:
            List of quiz names (file names without extension), sorted
        """
        return sorted(self.loaded_quizzes.keys())

    def get_question_set(self, quiz_name: str) -> Optional[QuestionSet]:
        """Retrieve a loaded question set by name, or None if not found."""
        return self.loaded_quizzes.get(quiz_name)

    def quiz_exists(self, quiz_name: str) -> bool:
        return quiz_name in self.loaded_quizzes

    def get_quiz_count(self) -> int:
        return len(self.loaded_quizzes)

    def _load_single_file(self, file_path: Path) -> QuestionSet:
        """
        Load and parse a single question-set file.

        Raises:
            InputError: If the file is not valid JSON, not UTF-8 or not a valid question set
            OSError: If the file cannot be read
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise InputError(f"Invalid JSON: {e}") from e
        except UnicodeDecodeError as e:
            raise InputError(f"Invalid encoding: {e}") from e
        return parse_question_set(data, source_id=file_path.name, config=self.config)

    def _ensure_quiz_directory(self) -> Dict[str, Any]:
        """
        Ensure the quiz directory exists and is readable.

        Returns:
            Dictionary with success status and error message if applicable
        """
        try:
            if not self.quiz_directory.exists():
                self.quiz_directory.mkdir(parents=True, exist_ok=True)
                self.logger.info(f"Created quiz directory: {self.quiz_directory}")

            if not os.access(self.quiz_directory, os.R_OK):
                return {
                    'success': False,
                    'error': f"Permission denied: Cannot read from {self.quiz_directory}"
                }

            return {'success': True}

        except PermissionError:
            return {
                'success': False,
                'error': f"Permission denied: Cannot access {self.quiz_directory}"
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error accessing {self.quiz_directory}: {e}"
            }

    def _scan_quiz_files(self) -> Dict[str, Any]:
        """
        Scan the quiz directory for JSON files.

        Returns:
            Dictionary with success status, files list, and error message if applicable
        """
        try:
            return {
                'success': True,
                'files': sorted(self.quiz_directory.glob("*.json"))
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error scanning {self.quiz_directory}: {e}",
                'files': []
            }

    def _load_quiz_file_safely(self, json_file: Path) -> Dict[str, Any]:
        """
        Load a single question-set file, converting failures into a result.

        Args:
            json_file: Path to the JSON file to load

        Returns:
            Dictionary with success status and error message if applicable
        """
        try:
            file_size = json_file.stat().st_size
            if file_size > MAX_FILE_SIZE:
                return {
                    'success': False,
                    'error': f"File too large ({file_size / 1024 / 1024:.1f}MB). "
                             f"Maximum size is {MAX_FILE_SIZE / 1024 / 1024:.0f}MB"
                }

            question_set = self._load_single_file(json_file)

            quiz_name = json_file.stem
            self.loaded_quizzes[quiz_name] = question_set
            self.logger.info(
                f"Loaded quiz '{quiz_name}' with {len(question_set)} questions",
                extra={
                    'event_type': 'question_set_loaded',
                    'quiz_name': quiz_name,
                    'question_count': len(question_set),
                }
            )
            return {'success': True}

        except InputError as e:
            self.logger.error(f"Invalid question set in {json_file}: {e}")
            return {
                'success': False,
                'error': str(e)
            }
        except PermissionError:
            return {
                'success': False,
                'error': "Permission denied: Cannot read file"
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error: {e}"
            }

    def _create_sample_quiz(self) -> Dict[str, QuestionSet]:
        """
        Write and load a sample question set when the directory is empty.

        Returns:
            Dictionary with the sample quiz loaded
        """
        sample_quiz_data = {
            "title": "Sample Quiz",
            "description": "A short warm-up to try the power-up quiz.",
            "questions": [
                {
                    "id": "q1",
                    "question": "What is the capital of France?",
                    "options": ["London", "Berlin", "Paris", "Madrid"],
                    "correctAnswer": 2,
                    "explanation": "Paris has been the capital of France since 987."
                },
                {
                    "id": "q2",
                    "question": "What is 2 + 2?",
                    "options": ["3", "4", "5", "22"],
                    "correctAnswer": 1,
                    "explanation": "Two plus two equals four."
                },
                {
                    "id": "q3",
                    "question": "What programming language is this bot written in?",
                    "options": ["Rust", "Go", "Python", "Java"],
                    "correctAnswer": 2,
                    "explanation": "The bot is built with discord.py."
                }
            ]
        }

        sample_file_path = self.quiz_directory / "sample_quiz.json"
        try:
            if not sample_file_path.exists():
                with open(sample_file_path, 'w', encoding='utf-8') as f:
                    json.dump(sample_quiz_data, f, indent=2, ensure_ascii=False)
                self.logger.info(f"Created sample quiz file: {sample_file_path}")
        except OSError as e:
            self.logger.error(f"Failed to write sample quiz: {e}")
            self.load_errors.append(f"Failed to write sample quiz: {e}")

        self.loaded_quizzes["sample_quiz"] = parse_question_set(
            sample_quiz_data, source_id=sample_file_path.name, config=self.config
        )
        self.sample_quiz_created = True
        self.logger.info("Loaded sample quiz with 3 questions")
        return self.loaded_quizzes

    def get_load_errors(self) -> List[str]:
        """Get a copy of the errors from the last load operation."""
        return self.load_errors.copy()

    def has_load_errors(self) -> bool:
        return len(self.load_errors) > 0

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the last loading operation.

        Returns:
            Dictionary with loading statistics and status
        """
        return {
            'total_quizzes': len(self.loaded_quizzes),
            'has_errors': self.has_load_errors(),
            'error_count': len(self.load_errors),
            'errors': self.get_load_errors(),
            'sample_active': self.sample_quiz_created,
            'quiz_directory': str(self.quiz_directory),
            'available_quizzes': self.get_available_quizzes()
        }
