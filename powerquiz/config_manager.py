"""
Configuration manager for Power-Up Quiz game settings.
"""
import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List

from .models import GameConfig


class ConfigManager:
    """Manages game rules and file locations with validation."""

    # Default configuration values
    DEFAULT_QUIZ_DIRECTORY = "./quizzes/"
    DEFAULT_BEST_SCORE_FILE = "./data/best_score.json"

    # Validation limits
    MIN_TIME_LIMIT = 5
    MAX_TIME_LIMIT = 300  # 5 minutes
    MIN_LIVES = 1
    MIN_POWER_UP_CHANCE = 0
    MAX_POWER_UP_CHANCE = 100
    MIN_REVEAL_DELAY = 0.0
    MAX_REVEAL_DELAY = 10.0

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._game_config = GameConfig()
        self._quiz_directory = self.DEFAULT_QUIZ_DIRECTORY
        self._best_score_file = self.DEFAULT_BEST_SCORE_FILE

    def get_game_config(self) -> GameConfig:
        """
        Get a copy of the current game rules.

        Returns:
            GameConfig that sessions can hold without seeing later changes
        """
        return replace(
            self._game_config,
            difficulty_thresholds=dict(self._game_config.difficulty_thresholds),
            points_progression=list(self._game_config.points_progression),
        )

    def _invalid(self, error_msg: str, user_message: str) -> Dict[str, Any]:
        self.logger.error(error_msg)
        return {
            'success': False,
            'error': error_msg,
            'user_message': user_message
        }

    def _check_int(self, value: Any, name: str) -> Dict[str, Any]:
        if not isinstance(value, int) or isinstance(value, bool):
            return self._invalid(
                f"{name} must be an integer, got {type(value).__name__}",
                f"❌ Invalid input: Expected a number, got {type(value).__name__}"
            )
        return {'success': True}

    def set_question_time_limit(self, seconds: int) -> Dict[str, Any]:
        """
        Set the countdown for each question.

        Args:
            seconds: Time limit in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        check = self._check_int(seconds, "Time limit")
        if not check['success']:
            return check

        if seconds < self.MIN_TIME_LIMIT:
            return self._invalid(
                f"Time limit must be at least {self.MIN_TIME_LIMIT} seconds",
                f"❌ Timer too short: Minimum is {self.MIN_TIME_LIMIT} seconds"
            )

        if seconds > self.MAX_TIME_LIMIT:
            return self._invalid(
                f"Time limit cannot exceed {self.MAX_TIME_LIMIT} seconds",
                f"❌ Timer too long: Maximum is {self.MAX_TIME_LIMIT} seconds "
                f"({self.MAX_TIME_LIMIT // 60} minutes)"
            )

        self._game_config.question_time_limit = seconds
        self.logger.info(f"Question time limit set to {seconds} seconds")
        return {
            'success': True,
            'message': f"Question time limit set to {seconds} seconds",
            'user_message': f"✅ Timer set to {seconds} seconds per question"
        }

    def get_question_time_limit(self) -> int:
        return self._game_config.question_time_limit

    def set_initial_lives(self, lives: int) -> Dict[str, Any]:
        """
        Set the number of lives a session starts with.

        Args:
            lives: Starting lives, between MIN_LIVES and the life cap

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        check = self._check_int(lives, "Initial lives")
        if not check['success']:
            return check

        max_lives = self._game_config.max_lives
        if lives < self.MIN_LIVES or lives > max_lives:
            return self._invalid(
                f"Initial lives must be between {self.MIN_LIVES} and {max_lives}",
                f"❌ Lives must be between {self.MIN_LIVES} and {max_lives}"
            )

        self._game_config.initial_lives = lives
        self.logger.info(f"Initial lives set to {lives}")
        return {
            'success': True,
            'message': f"Initial lives set to {lives}",
            'user_message': f"✅ Games will start with {lives} {'life' if lives == 1 else 'lives'}"
        }

    def get_initial_lives(self) -> int:
        return self._game_config.initial_lives

    def set_power_up_chance(self, percent: int) -> Dict[str, Any]:
        """
        Set the base chance of earning a power-up on a correct answer.

        Args:
            percent: Base chance in percent

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        check = self._check_int(percent, "Power-up chance")
        if not check['success']:
            return check

        if percent < self.MIN_POWER_UP_CHANCE or percent > self.MAX_POWER_UP_CHANCE:
            return self._invalid(
                f"Power-up chance must be between {self.MIN_POWER_UP_CHANCE} and {self.MAX_POWER_UP_CHANCE}",
                f"❌ Chance must be between {self.MIN_POWER_UP_CHANCE}% and {self.MAX_POWER_UP_CHANCE}%"
            )

        self._game_config.power_up_chance = percent
        self.logger.info(f"Base power-up chance set to {percent}%")
        return {
            'success': True,
            'message': f"Base power-up chance set to {percent}%",
            'user_message': f"✅ Base power-up chance set to {percent}%"
        }

    def get_power_up_chance(self) -> int:
        return self._game_config.power_up_chance

    def set_power_ups_enabled(self, enabled: bool) -> Dict[str, Any]:
        """
        Turn power-up rolls on or off.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(enabled, bool):
            return self._invalid(
                f"Power-ups enabled must be a boolean, got {type(enabled).__name__}",
                f"❌ Invalid input: Expected true/false, got {type(enabled).__name__}"
            )

        self._game_config.power_ups_enabled = enabled
        state = "enabled" if enabled else "disabled"
        self.logger.info(f"Power-ups {state}")
        return {
            'success': True,
            'message': f"Power-ups {state}",
            'user_message': f"✅ Power-ups {state}"
        }

    def set_reveal_delays(self, answer_delay: float, timeout_delay: float) -> Dict[str, Any]:
        """
        Set how long answers stay revealed before the next question.

        Args:
            answer_delay: Seconds after an answer
            timeout_delay: Seconds after a timeout

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        for name, value in (("Answer reveal delay", answer_delay), ("Timeout reveal delay", timeout_delay)):
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                return self._invalid(
                    f"{name} must be a number, got {type(value).__name__}",
                    f"❌ Invalid input: Expected a number, got {type(value).__name__}"
                )
            if value < self.MIN_REVEAL_DELAY or value > self.MAX_REVEAL_DELAY:
                return self._invalid(
                    f"{name} must be between {self.MIN_REVEAL_DELAY} and {self.MAX_REVEAL_DELAY} seconds",
                    f"❌ Reveal delay must be between {self.MIN_REVEAL_DELAY:g} and "
                    f"{self.MAX_REVEAL_DELAY:g} seconds"
                )

        self._game_config.answer_reveal_delay = float(answer_delay)
        self._game_config.timeout_reveal_delay = float(timeout_delay)
        self.logger.info(f"Reveal delays set to {answer_delay}s (answer) and {timeout_delay}s (timeout)")
        return {
            'success': True,
            'message': "Reveal delays updated",
            'user_message': f"✅ Answers are revealed for {answer_delay:g}s, timeouts for {timeout_delay:g}s"
        }

    def set_quiz_directory(self, directory: str) -> Dict[str, Any]:
        """
        Set the directory holding question-set files.

        Args:
            directory: Path to question-set files directory

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(directory, str):
            return self._invalid(
                f"Quiz directory must be a string, got {type(directory).__name__}",
                f"❌ Invalid input: Expected a path string, got {type(directory).__name__}"
            )

        if not directory.strip():
            return self._invalid("Quiz directory cannot be empty", "❌ Directory path cannot be empty")

        try:
            normalized_path = str(Path(directory).resolve())
        except (OSError, ValueError) as e:
            return self._invalid(
                f"Invalid directory path format: {e}",
                f"❌ Invalid path format: {directory}"
            )

        system_dirs = ['/bin', '/usr', '/etc', '/sys', '/proc', 'C:\\Windows', 'C:\\Program Files']
        if any(normalized_path.startswith(sys_dir) for sys_dir in system_dirs):
            return self._invalid(
                f"Cannot use system directory: {normalized_path}",
                f"❌ Cannot use system directory: {directory}"
            )

        self._quiz_directory = normalized_path
        self.logger.info(f"Quiz directory set to {normalized_path}")
        return {
            'success': True,
            'message': f"Quiz directory set to {normalized_path}",
            'user_message': f"✅ Quiz directory set to {normalized_path}"
        }

    def get_quiz_directory(self) -> str:
        return self._quiz_directory

    def set_best_score_file(self, file_path: str) -> Dict[str, Any]:
        """
        Set where the best score is persisted.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(file_path, str) or not file_path.strip():
            return self._invalid(
                "Best score file must be a non-empty path string",
                "❌ Best score file path cannot be empty"
            )

        self._best_score_file = file_path
        self.logger.info(f"Best score file set to {file_path}")
        return {
            'success': True,
            'message': f"Best score file set to {file_path}",
            'user_message': f"✅ Best score will be saved to {file_path}"
        }

    def get_best_score_file(self) -> str:
        return self._best_score_file

    def apply_settings(self, settings: Dict[str, Any]) -> List[str]:
        """
        Apply a ``game`` section from config.json.

        Invalid values are logged and skipped so the defaults stay in place.

        Args:
            settings: Mapping of setting names to values

        Returns:
            List of error messages for the settings that were rejected
        """
        errors = []
        setters = {
            'question_time_limit': self.set_question_time_limit,
            'initial_lives': self.set_initial_lives,
            'power_up_chance': self.set_power_up_chance,
            'power_ups_enabled': self.set_power_ups_enabled,
            'best_score_file': self.set_best_score_file,
        }
        for key, setter in setters.items():
            if key in settings:
                result = setter(settings[key])
                if not result['success']:
                    errors.append(result['error'])

        if 'answer_reveal_delay' in settings or 'timeout_reveal_delay' in settings:
            result = self.set_reveal_delays(
                settings.get('answer_reveal_delay', self._game_config.answer_reveal_delay),
                settings.get('timeout_reveal_delay', self._game_config.timeout_reveal_delay),
            )
            if not result['success']:
                errors.append(result['error'])

        return errors

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._game_config = GameConfig()
        self._quiz_directory = self.DEFAULT_QUIZ_DIRECTORY
        self._best_score_file = self.DEFAULT_BEST_SCORE_FILE
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }
        config = self._game_config

        if not self.MIN_TIME_LIMIT <= config.question_time_limit <= self.MAX_TIME_LIMIT:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid time limit: {config.question_time_limit}")

        if not self.MIN_LIVES <= config.initial_lives <= config.max_lives:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid initial lives: {config.initial_lives}")

        if not self.MIN_POWER_UP_CHANCE <= config.power_up_chance <= self.MAX_POWER_UP_CHANCE:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid power-up chance: {config.power_up_chance}")

        if not isinstance(self._quiz_directory, str) or not self._quiz_directory.strip():
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid quiz directory: {self._quiz_directory}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        config = self._game_config
        power_ups = f"{config.power_up_chance}% base chance" if config.power_ups_enabled else "disabled"
        return (
            f"Game Settings:\n"
            f"• Timer: {config.question_time_limit} seconds\n"
            f"• Lives: {config.initial_lives} (max {config.max_lives})\n"
            f"• Power-ups: {power_ups}\n"
            f"• Quiz Directory: {self._quiz_directory}"
        )

    def get_configuration_health_check(self) -> Dict[str, Any]:
        """
        Perform a health check of the configuration.

        Returns:
            Dictionary with health status and recommendations
        """
        health_check = {
            'healthy': True,
            'warnings': [],
            'errors': [],
            'recommendations': []
        }

        validation_result = self.validate_settings()
        if not validation_result['valid']:
            health_check['healthy'] = False
            health_check['errors'].extend(f"❌ {issue}" for issue in validation_result['issues'])

        quiz_dir = Path(self._quiz_directory)
        if not quiz_dir.exists():
            health_check['warnings'].append(f"⚠️ Quiz directory does not exist: {self._quiz_directory}")
            health_check['recommendations'].append(
                "The quiz directory will be created automatically when loading quiz files."
            )
        elif not os.access(quiz_dir, os.R_OK):
            health_check['healthy'] = False
            health_check['errors'].append(f"❌ Cannot read quiz directory: {self._quiz_directory}")
            health_check['recommendations'].append("Check file permissions for the quiz directory.")

        if self._game_config.question_time_limit < 10:
            health_check['warnings'].append(
                f"⚠️ Short timer ({self._game_config.question_time_limit}s) leaves little time to read four options"
            )
            health_check['recommendations'].append("Consider using at least 10 seconds per question.")

        return health_check
