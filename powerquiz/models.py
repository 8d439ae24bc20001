"""
Core data models for the Power-Up Quiz bot.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class DifficultyTier(Enum):
    """Difficulty bucket derived from a question's position in its set."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    BOSS = "boss"


class PowerUpKind(Enum):
    """Effect families a power-up can belong to."""
    DOUBLE_POINTS = "double_points"
    IMMUNITY = "immunity"
    EXTRA_LIFE = "extra_life"
    EXTENDED_TIME = "extended_time"


class TerminalState(Enum):
    """Terminal marker carried by every session snapshot."""
    NONE = "none"
    LOST = "lost"
    WON = "won"


@dataclass(frozen=True)
class Question:
    """Represents a single multiple-choice question."""
    id: str
    prompt: str
    options: Tuple[str, ...]
    correct_option_index: int
    difficulty_tier: DifficultyTier = DifficultyTier.EASY
    base_points: int = 100
    explanation: Optional[str] = None

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_option_index]


@dataclass(frozen=True)
class QuestionSet:
    """An ordered set of questions produced from one source document."""
    title: str
    description: str
    questions: Tuple[Question, ...]
    source_id: str

    def __len__(self) -> int:
        return len(self.questions)


@dataclass(frozen=True)
class PowerUpDefinition:
    """Static catalog entry for a power-up."""
    id: str
    kind: PowerUpKind
    name: str
    description: str
    icon: str = ""
    duration_seconds: Optional[int] = None
    uses_remaining: Optional[int] = None
    multiplier: Optional[float] = None

    @property
    def is_instant(self) -> bool:
        return self.kind is PowerUpKind.EXTRA_LIFE


@dataclass(frozen=True)
class ActiveModifier:
    """A granted power-up that is currently in effect."""
    definition: PowerUpDefinition
    remaining_time: Optional[int] = None
    remaining_uses: Optional[int] = None

    @property
    def is_time_based(self) -> bool:
        return self.remaining_time is not None

    @property
    def is_usage_based(self) -> bool:
        return self.remaining_uses is not None

    @property
    def is_expired(self) -> bool:
        if self.remaining_time is not None and self.remaining_time <= 0:
            return True
        if self.remaining_uses is not None and self.remaining_uses <= 0:
            return True
        return False


@dataclass
class GameConfig:
    """Tunable rules for a play session."""
    initial_lives: int = 3
    max_lives: int = 5
    question_time_limit: int = 30
    power_up_chance: int = 15
    power_ups_enabled: bool = True
    answer_reveal_delay: float = 3.0
    timeout_reveal_delay: float = 2.0
    difficulty_thresholds: Dict[DifficultyTier, int] = field(default_factory=lambda: {
        DifficultyTier.EASY: 0,
        DifficultyTier.MEDIUM: 4,
        DifficultyTier.HARD: 8,
        DifficultyTier.BOSS: 12,
    })
    points_progression: List[int] = field(default_factory=lambda: [100, 200, 400, 800, 1600])


@dataclass(frozen=True)
class SessionState:
    """Immutable snapshot of a play session, emitted after every event."""
    current_index: int
    score: int
    lives: int
    time_remaining: int
    active_modifiers: Tuple[ActiveModifier, ...]
    consecutive_correct: int
    total_questions: int
    terminal: TerminalState = TerminalState.NONE
    questions_answered: int = 0
    correct_answers: int = 0
    power_ups_collected: Tuple[str, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.terminal is not TerminalState.NONE


@dataclass(frozen=True)
class AnswerResult:
    """Outcome of resolving one answer or timeout."""
    correct: bool
    points_earned: int
    correct_index: int
    state: SessionState
    power_up_granted: Optional[PowerUpDefinition] = None
    selected_index: Optional[int] = None
    timed_out: bool = False
    immunity_used: bool = False


@dataclass(frozen=True)
class SessionOutcome:
    """Final result of a session that reached a terminal state."""
    terminal: TerminalState
    final_score: int
    is_new_best: bool
    questions_answered: int = 0
    correct_answers: int = 0
