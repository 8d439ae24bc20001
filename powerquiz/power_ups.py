"""
Power-up catalog and the probabilistic roll that grants power-ups.
"""
import logging
import math
from typing import Optional, Protocol, Tuple

from .models import DifficultyTier, PowerUpDefinition, PowerUpKind

logger = logging.getLogger(__name__)

DEFAULT_BASE_CHANCE_PERCENT = 15
STREAK_CHANCE_PER_ANSWER = 5
STREAK_CHANCE_CAP = 25

TIER_CHANCE_BONUS = {
    DifficultyTier.HARD: 10,
    DifficultyTier.BOSS: 20,
}


class RandomSource(Protocol):
    """Anything with a ``random()`` returning a float in [0, 1), e.g. ``random.Random``."""

    def random(self) -> float:
        ...


FIRE_FLOWER = PowerUpDefinition(
    id="fire-flower",
    kind=PowerUpKind.DOUBLE_POINTS,
    name="Fire Flower",
    description="Double points for the next 3 questions!",
    icon="🌸",
    uses_remaining=3,
    multiplier=2,
)

STAR_POWER = PowerUpDefinition(
    id="star-power",
    kind=PowerUpKind.IMMUNITY,
    name="Star Power",
    description="Immunity to wrong answers for 30 seconds!",
    icon="⭐",
    duration_seconds=30,
)

ONE_UP_MUSHROOM = PowerUpDefinition(
    id="1up-mushroom",
    kind=PowerUpKind.EXTRA_LIFE,
    name="1UP Mushroom",
    description="Gain an extra life!",
    icon="🍄",
)

SUPER_MUSHROOM = PowerUpDefinition(
    id="super-mushroom",
    kind=PowerUpKind.EXTENDED_TIME,
    name="Super Mushroom",
    description="1.5x points for the next 60 seconds!",
    icon="🍄",
    duration_seconds=60,
    multiplier=1.5,
)

POWER_UPS: Tuple[PowerUpDefinition, ...] = (
    FIRE_FLOWER,
    STAR_POWER,
    ONE_UP_MUSHROOM,
    SUPER_MUSHROOM,
)


def get_power_up(power_up_id: str) -> Optional[PowerUpDefinition]:
    """Look up a catalog entry by id."""
    for power_up in POWER_UPS:
        if power_up.id == power_up_id:
            return power_up
    return None


def power_up_chance(
    consecutive_correct: int,
    difficulty_tier: DifficultyTier,
    base_chance_percent: int = DEFAULT_BASE_CHANCE_PERCENT
) -> int:
    """
    Compute the percentage chance of earning a power-up.

    Args:
        consecutive_correct: Streak length before the answer
        difficulty_tier: Tier of the answered question
        base_chance_percent: Chance before streak and tier bonuses

    Returns:
        Chance in percent; values above 100 mean a guaranteed grant
    """
    streak_bonus = min(max(consecutive_correct, 0) * STREAK_CHANCE_PER_ANSWER, STREAK_CHANCE_CAP)
    tier_bonus = TIER_CHANCE_BONUS.get(difficulty_tier, 0)
    return base_chance_percent + streak_bonus + tier_bonus


def roll_power_up(
    consecutive_correct: int,
    difficulty_tier: DifficultyTier,
    rng: RandomSource,
    base_chance_percent: int = DEFAULT_BASE_CHANCE_PERCENT
) -> Optional[PowerUpDefinition]:
    """
    Decide whether a correct answer earns a power-up, and which one.

    Two independent draws are taken from ``rng``: the first decides whether
    a power-up is granted, the second picks the catalog entry.

    Args:
        consecutive_correct: Streak length before the answer
        difficulty_tier: Tier of the answered question
        rng: Injected random source
        base_chance_percent: Chance before streak and tier bonuses

    Returns:
        The granted power-up, or None
    """
    chance = power_up_chance(consecutive_correct, difficulty_tier, base_chance_percent)
    draw = rng.random() * 100
    if draw >= chance:
        logger.debug(
            f"Power-up roll missed: draw {draw:.2f} >= chance {chance}",
            extra={
                'event_type': 'power_up_roll_missed',
                'chance': chance,
                'draw': draw,
            }
        )
        return None

    index = min(math.floor(rng.random() * len(POWER_UPS)), len(POWER_UPS) - 1)
    granted = POWER_UPS[index]
    logger.debug(
        f"Power-up roll granted {granted.id}: draw {draw:.2f} < chance {chance}",
        extra={
            'event_type': 'power_up_roll_granted',
            'chance': chance,
            'draw': draw,
            'power_up_id': granted.id,
        }
    )
    return granted
