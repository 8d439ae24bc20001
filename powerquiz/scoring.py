"""
Scoring rules for the Power-Up Quiz bot.
Point computation, multiplier stacking and position-based difficulty tiers.
"""
import math
from typing import Iterable, Optional

from .models import ActiveModifier, DifficultyTier, GameConfig, PowerUpKind, Question

STREAK_BONUS_PER_ANSWER = 50
STREAK_BONUS_CAP = 500
TIME_BONUS_PER_SECOND = 10

_TIER_ORDER = [
    DifficultyTier.EASY,
    DifficultyTier.MEDIUM,
    DifficultyTier.HARD,
    DifficultyTier.BOSS,
]

_DEFAULT_CONFIG = GameConfig()


def modifier_multiplier(modifier: ActiveModifier) -> float:
    """
    Get the score multiplier contributed by a single active modifier.

    Double-points modifiers always count as 2x; any other modifier counts as
    its definition's multiplier, or 1 when it has none.
    """
    definition = modifier.definition
    if definition.kind is PowerUpKind.DOUBLE_POINTS:
        return 2
    if definition.multiplier is not None:
        return definition.multiplier
    return 1


def combined_multiplier(active_modifiers: Iterable[ActiveModifier]) -> float:
    """Multiply together the multipliers of all active modifiers."""
    multiplier = 1
    for modifier in active_modifiers:
        multiplier *= modifier_multiplier(modifier)
    return multiplier


def compute_points(
    question: Question,
    consecutive_correct: int,
    active_modifiers: Iterable[ActiveModifier],
    time_remaining_at_answer: float
) -> int:
    """
    Compute the points awarded for a correct answer.

    Args:
        question: The question that was answered
        consecutive_correct: Streak length before this answer
        active_modifiers: Modifiers in effect when the answer was given
        time_remaining_at_answer: Seconds left on the question timer

    Returns:
        Points earned, never negative
    """
    streak_bonus = min(max(consecutive_correct, 0) * STREAK_BONUS_PER_ANSWER, STREAK_BONUS_CAP)
    time_bonus = math.floor(max(time_remaining_at_answer, 0) * TIME_BONUS_PER_SECOND)
    multiplier = combined_multiplier(active_modifiers)

    points = math.floor((question.base_points + streak_bonus + time_bonus) * multiplier)
    return max(points, 0)


def get_question_difficulty(index: int, config: Optional[GameConfig] = None) -> DifficultyTier:
    """
    Derive the difficulty tier of a question from its position.

    Args:
        index: Zero-based position of the question in its set
        config: Game configuration holding the tier thresholds

    Returns:
        The highest tier whose threshold the index has reached
    """
    thresholds = (config or _DEFAULT_CONFIG).difficulty_thresholds
    tier = DifficultyTier.EASY
    for candidate in _TIER_ORDER:
        if index >= thresholds.get(candidate, 0):
            tier = candidate
    return tier


def points_for_tier(tier: DifficultyTier, config: Optional[GameConfig] = None) -> int:
    """Get the base points of a tier from the points progression."""
    progression = (config or _DEFAULT_CONFIG).points_progression
    position = _TIER_ORDER.index(tier)
    if position >= len(progression):
        return progression[-1]
    return progression[position]


def format_time(seconds: int) -> str:
    """Format a number of seconds as MM:SS."""
    seconds = max(int(seconds), 0)
    minutes, remaining_seconds = divmod(seconds, 60)
    return f"{minutes:02d}:{remaining_seconds:02d}"
