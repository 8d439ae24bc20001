"""
Play session state machine for the Power-Up Quiz bot.

A session moves through Active(question_index) until it is Lost (no lives
left) or Won (last question resolved with lives remaining). It is driven
entirely from outside: a scheduler calls ``tick()`` once per second and the
player's input arrives through ``submit_answer()``. Every event replaces the
current ``SessionState`` with a new immutable snapshot.
"""
import logging
import random
from dataclasses import replace
from typing import Optional

from .best_score import BestScoreStore
from .data_manager import validate_question_set
from .modifiers import ActiveModifierSet
from .models import (
    AnswerResult,
    GameConfig,
    Question,
    QuestionSet,
    SessionOutcome,
    SessionState,
    TerminalState,
)
from .power_ups import RandomSource, roll_power_up
from .scoring import compute_points

logger = logging.getLogger(__name__)


class ProtocolError(Exception):
    """Raised when an event arrives while the session cannot accept it."""
    pass


class QuizSession:
    """Single-player quiz session with lives, a countdown and power-ups."""

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        rng: Optional[RandomSource] = None,
        best_score_store: Optional[BestScoreStore] = None
    ):
        """
        Initialize an idle session.

        Args:
            config: Game rules, defaults to GameConfig()
            rng: Random source for power-up rolls
            best_score_store: Store that records finished sessions
        """
        self.logger = logging.getLogger(__name__)
        self.config = config or GameConfig()
        self.rng = rng or random.Random()
        self.best_score_store = best_score_store or BestScoreStore()

        self._question_set: Optional[QuestionSet] = None
        self._state: Optional[SessionState] = None
        self._modifiers = ActiveModifierSet()
        self._outcome: Optional[SessionOutcome] = None
        self._last_result: Optional[AnswerResult] = None

    @property
    def state(self) -> Optional[SessionState]:
        return self._state

    @property
    def question_set(self) -> Optional[QuestionSet]:
        return self._question_set

    @property
    def outcome(self) -> Optional[SessionOutcome]:
        return self._outcome

    @property
    def last_result(self) -> Optional[AnswerResult]:
        return self._last_result

    @property
    def is_active(self) -> bool:
        return self._state is not None and not self._state.is_terminal

    @property
    def current_question(self) -> Optional[Question]:
        if self._state is None or self._question_set is None:
            return None
        return self._question_set.questions[self._state.current_index]

    @property
    def best_score(self) -> int:
        return self.best_score_store.read()

    def start(self, question_set: QuestionSet) -> SessionState:
        """
        Start a new session on a question set.

        Any previous session held by this object is discarded.

        Args:
            question_set: Questions to play, validated before use

        Returns:
            Initial snapshot, Active(0)

        Raises:
            InputError: If the question set is malformed
        """
        validated = validate_question_set(question_set, self.config)

        self._question_set = validated
        self._modifiers = ActiveModifierSet()
        self._outcome = None
        self._last_result = None
        self._state = SessionState(
            current_index=0,
            score=0,
            lives=self.config.initial_lives,
            time_remaining=self.config.question_time_limit,
            active_modifiers=(),
            consecutive_correct=0,
            total_questions=len(validated),
        )

        self.logger.info(
            f"Session started: '{validated.title}' with {len(validated)} questions",
            extra={
                'event_type': 'session_started',
                'source_id': validated.source_id,
                'total_questions': len(validated),
                'lives': self.config.initial_lives,
                'time_limit': self.config.question_time_limit,
            }
        )
        return self._state

    def tick(self) -> Optional[AnswerResult]:
        """
        Advance the session clock by one second.

        Decrements the question timer and every time-based modifier. When
        the timer reaches zero a timeout is resolved immediately.

        Returns:
            The timeout's AnswerResult if the question expired on this tick,
            otherwise None (including when the tick was ignored)
        """
        try:
            self._require_active("tick")
        except ProtocolError as e:
            self._log_protocol_error(e)
            return None

        self._modifiers = self._modifiers.advance(1)
        self._state = replace(
            self._state,
            time_remaining=max(self._state.time_remaining - 1, 0),
            active_modifiers=self._modifiers.modifiers,
        )

        if self._state.time_remaining == 0:
            self.logger.debug(
                f"Question {self._state.current_index} timed out",
                extra={'event_type': 'question_timed_out', 'question_index': self._state.current_index}
            )
            return self._resolve(selected_index=None)
        return None

    def submit_answer(self, option_index: int) -> Optional[AnswerResult]:
        """
        Resolve the player's answer to the current question.

        Args:
            option_index: Zero-based index of the chosen option

        Returns:
            AnswerResult, or None if the answer was ignored
        """
        try:
            self._require_active("answer")
            question = self.current_question
            if not isinstance(option_index, int) or not 0 <= option_index < len(question.options):
                raise ProtocolError(f"Option index {option_index!r} is out of range")
        except ProtocolError as e:
            self._log_protocol_error(e)
            return None

        return self._resolve(selected_index=option_index)

    def submit_timeout(self) -> Optional[AnswerResult]:
        """
        Resolve the current question as timed out.

        Returns:
            AnswerResult, or None if the timeout was ignored
        """
        try:
            self._require_active("timeout")
        except ProtocolError as e:
            self._log_protocol_error(e)
            return None

        return self._resolve(selected_index=None)

    def reset(self) -> None:
        """Discard the current session and return to idle."""
        if self._state is not None:
            self.logger.info(
                "Session reset",
                extra={
                    'event_type': 'session_reset',
                    'terminal': self._state.terminal.value,
                    'score': self._state.score,
                }
            )
        self._question_set = None
        self._state = None
        self._modifiers = ActiveModifierSet()
        self._outcome = None
        self._last_result = None

    def _require_active(self, event: str) -> None:
        if self._state is None:
            raise ProtocolError(f"Cannot process {event}: no session started")
        if self._state.is_terminal:
            raise ProtocolError(
                f"Cannot process {event}: session already {self._state.terminal.value}"
            )

    def _log_protocol_error(self, error: ProtocolError) -> None:
        self.logger.warning(
            f"Ignored event: {error}",
            extra={'event_type': 'session_protocol_error', 'error_message': str(error)}
        )

    def _resolve(self, selected_index: Optional[int]) -> AnswerResult:
        """Apply an answer (or a timeout when selected_index is None) to the session."""
        state = self._state
        question = self.current_question
        timed_out = selected_index is None
        correct = not timed_out and selected_index == question.correct_option_index

        score = state.score
        lives = state.lives
        streak = state.consecutive_correct
        collected = state.power_ups_collected
        points = 0
        granted = None
        immunity_used = False

        if correct:
            points = compute_points(question, streak, self._modifiers, state.time_remaining)
            score += points
            self._modifiers = self._modifiers.consume_use()

            if self.config.power_ups_enabled:
                granted = roll_power_up(
                    streak,
                    question.difficulty_tier,
                    self.rng,
                    base_chance_percent=self.config.power_up_chance,
                )
            if granted is not None:
                collected = collected + (granted.id,)
                if granted.is_instant:
                    lives = min(lives + 1, self.config.max_lives)
                else:
                    self._modifiers = self._modifiers.admit(granted)
            streak += 1
        else:
            if self._modifiers.has_immunity():
                immunity_used = True
            else:
                lives -= 1
            streak = 0

        lives = max(lives, 0)
        next_index = state.current_index
        time_remaining = state.time_remaining
        if lives == 0:
            terminal = TerminalState.LOST
        elif state.current_index == state.total_questions - 1:
            terminal = TerminalState.WON
        else:
            terminal = TerminalState.NONE
            next_index += 1
            time_remaining = self.config.question_time_limit

        self._state = replace(
            state,
            current_index=next_index,
            score=score,
            lives=lives,
            time_remaining=time_remaining,
            active_modifiers=self._modifiers.modifiers,
            consecutive_correct=streak,
            terminal=terminal,
            questions_answered=state.questions_answered + 1,
            correct_answers=state.correct_answers + (1 if correct else 0),
            power_ups_collected=collected,
        )

        self._last_result = AnswerResult(
            correct=correct,
            points_earned=points,
            correct_index=question.correct_option_index,
            state=self._state,
            power_up_granted=granted,
            selected_index=selected_index,
            timed_out=timed_out,
            immunity_used=immunity_used,
        )

        self.logger.info(
            f"Question {state.current_index + 1}/{state.total_questions} resolved: "
            f"{'correct' if correct else 'timeout' if timed_out else 'incorrect'}, +{points} points",
            extra={
                'event_type': 'answer_resolved',
                'question_index': state.current_index,
                'correct': correct,
                'timed_out': timed_out,
                'points_earned': points,
                'lives': lives,
                'power_up_id': granted.id if granted else None,
                'immunity_used': immunity_used,
            }
        )

        if terminal is not TerminalState.NONE:
            self._finish()
        return self._last_result

    def _finish(self) -> None:
        """Record the final score once the session reaches a terminal state."""
        state = self._state
        is_new_best = self.best_score_store.record(state.score)
        self._outcome = SessionOutcome(
            terminal=state.terminal,
            final_score=state.score,
            is_new_best=is_new_best,
            questions_answered=state.questions_answered,
            correct_answers=state.correct_answers,
        )
        self.logger.info(
            f"Session finished: {state.terminal.value} with {state.score} points"
            + (" (new best score)" if is_new_best else ""),
            extra={
                'event_type': 'session_finished',
                'terminal': state.terminal.value,
                'final_score': state.score,
                'is_new_best': is_new_best,
            }
        )
