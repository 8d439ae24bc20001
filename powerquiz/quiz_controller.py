"""
Quiz game controller for the Power-Up Quiz bot.
Runs one play session per Discord channel: presents questions with answer
buttons, feeds ticks and answers into the session and renders the results.
"""
import logging
import asyncio
import discord
import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from .best_score import BestScoreStore
from .data_manager import DataManager, InputError
from .config_manager import ConfigManager
from .models import AnswerResult, DifficultyTier, Question, SessionOutcome, TerminalState
from .quiz_engine import QuizEngine
from .scoring import format_time
from .session import QuizSession

OPTION_LABELS = ("A", "B", "C", "D")
MAX_BUTTON_LABEL = 80

COLOR_QUESTION = 0x00ff00
COLOR_WARNING = 0xff6600
COLOR_DANGER = 0xff0000
COLOR_CORRECT = 0x2ecc71
COLOR_GOLD = 0xffd700

TIER_ICONS = {
    DifficultyTier.EASY: "🟢",
    DifficultyTier.MEDIUM: "🟡",
    DifficultyTier.HARD: "🔴",
    DifficultyTier.BOSS: "👑",
}

ENCOURAGEMENTS = (
    "Nice one!",
    "Right on the money!",
    "Good call, keep going!",
    "Spot on!",
    "That's how it's done!",
    "You're on a roll!",
    "Nothing can stop you now!",
    "Another one cleared, what a run!",
    "Powered up and unstoppable!",
    "Legendary streak!",
)
ENCOURAGEMENT_STREAK = 5
WRONG_ANSWER_LINE = "Oops! Better luck next time!"
TIMEOUT_LINE = "Time's up! Don't worry, you'll get the next one."


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class SessionConflictError(QuizControllerError):
    """Raised when attempting to create a session that conflicts with existing session."""
    pass


class SessionNotFoundError(QuizControllerError):
    """Raised when attempting to operate on a non-existent session."""
    pass


@dataclass
class ChannelGame:
    """A play session bound to a Discord channel and the player who started it."""
    channel_id: int
    owner_id: int
    quiz_name: str
    session: QuizSession
    start_time: datetime = field(default_factory=datetime.now)
    channel: Any = None
    message: Any = None
    accepting_input: bool = False


class AnswerView(discord.ui.View):
    """Four answer buttons attached to a question message."""

    def __init__(self, controller: "QuizController", channel_id: int, options):
        super().__init__(timeout=None)
        self.controller = controller
        self.channel_id = channel_id

        for index, option in enumerate(options):
            label = f"{OPTION_LABELS[index]}. {option}"
            if len(label) > MAX_BUTTON_LABEL:
                label = label[:MAX_BUTTON_LABEL - 1] + "…"
            button = discord.ui.Button(
                label=label,
                style=discord.ButtonStyle.primary,
                custom_id=f"answer:{channel_id}:{index}",
                row=index // 2,
            )
            button.callback = self._make_callback(index)
            self.add_item(button)

    def _make_callback(self, option_index: int):
        async def callback(interaction: discord.Interaction):
            result = self.controller.submit_answer(self.channel_id, interaction.user.id, option_index)
            if result['success']:
                await interaction.response.defer()
            else:
                await interaction.response.send_message(result['user_message'], ephemeral=True)
        return callback


class QuizController:
    """
    Orchestrates quiz sessions across Discord channels.

    Each channel can have at most one game. Only the player who started it
    may answer. While an answer is being revealed the game stops accepting
    input, so clicks and ticks that arrive in that window are ignored.
    """

    def __init__(
        self,
        data_manager: DataManager,
        config_manager: ConfigManager,
        quiz_engine: Optional[QuizEngine] = None,
        best_score_store: Optional[BestScoreStore] = None,
        rng=None
    ):
        """
        Initialize the quiz controller.

        Args:
            data_manager: Instance for loading question sets
            config_manager: Instance for managing game rules
            quiz_engine: Timer owner, a new QuizEngine when omitted
            best_score_store: Shared best-score store for every channel
            rng: Random source handed to each session
        """
        self.logger = logging.getLogger(__name__)
        self.data_manager = data_manager
        self.config_manager = config_manager
        self.quiz_engine = quiz_engine or QuizEngine()
        self.best_score_store = best_score_store or BestScoreStore()
        self.rng = rng

        self._games: Dict[int, ChannelGame] = {}
        self._session_errors: Dict[int, List[str]] = {}
        self._background_tasks: Set[asyncio.Task] = set()

        self.logger.info("QuizController initialized")

    def get_game(self, channel_id: int) -> Optional[ChannelGame]:
        return self._games.get(channel_id)

    def has_active_session(self, channel_id: int) -> bool:
        game = self._games.get(channel_id)
        return game is not None and game.session.is_active

    def get_available_quizzes(self) -> List[str]:
        return self.data_manager.get_available_quizzes()

    def get_best_score(self) -> int:
        return self.best_score_store.read()

    def start_quiz(self, channel_id: int, quiz_name: str, owner_id: int) -> Dict[str, Any]:
        """
        Start a game in a channel.

        Args:
            channel_id: Discord channel identifier
            quiz_name: Name of the question set to play
            owner_id: Discord user who will answer the questions

        Returns:
            Dictionary with operation results and error information
        """
        try:
            if self.has_active_session(channel_id):
                raise SessionConflictError(f"Quiz already running in channel {channel_id}")

            question_set = self.data_manager.get_question_set(quiz_name)
            if question_set is None:
                available_quizzes = self.get_available_quizzes()
                if not available_quizzes:
                    raise ValueError("No quiz files available. Please add quiz files to the quizzes directory.")
                raise ValueError(f"Quiz '{quiz_name}' not found. Available quizzes: {', '.join(available_quizzes)}")

            session = QuizSession(
                config=self.config_manager.get_game_config(),
                rng=self.rng,
                best_score_store=self.best_score_store,
            )
            session.start(question_set)

            self._games[channel_id] = ChannelGame(
                channel_id=channel_id,
                owner_id=owner_id,
                quiz_name=quiz_name,
                session=session,
            )
            self._session_errors.pop(channel_id, None)

            self.logger.info(
                f"Created quiz game for channel {channel_id}: quiz='{quiz_name}', questions={len(question_set)}",
                extra={
                    'event_type': 'game_created',
                    'channel_id': channel_id,
                    'owner_id': owner_id,
                    'quiz_name': quiz_name,
                    'timestamp': time.time()
                }
            )
            return {
                'success': True,
                'message': f"Quiz '{quiz_name}' started successfully",
                'session_info': self.get_session_progress(channel_id)
            }

        except Exception as e:
            return self._handle_session_error(channel_id, e, "start_quiz")

    def stop_quiz(self, channel_id: int) -> Dict[str, Any]:
        """
        Stop the game in a channel without recording its score.

        Returns:
            Dictionary with operation results and the final progress
        """
        game = self._games.get(channel_id)
        if game is None:
            return {
                'success': False,
                'message': "No active quiz to stop in this channel",
                'user_message': "ℹ️ No active quiz found in this channel"
            }

        session_info = self.get_session_progress(channel_id)
        game.accepting_input = False
        timer_cancelled = self.quiz_engine.cancel_timer(str(channel_id))
        game.session.reset()
        del self._games[channel_id]

        self.logger.info(
            f"Stopped game for channel {channel_id}, timer cancelled: {timer_cancelled}",
            extra={
                'event_type': 'game_stopped',
                'channel_id': channel_id,
                'timer_cancelled': timer_cancelled,
                'timestamp': time.time()
            }
        )
        return {
            'success': True,
            'message': "Quiz stopped successfully",
            'session_info': session_info
        }

    def get_session_progress(self, channel_id: int) -> Optional[Dict[str, Any]]:
        """
        Get progress information for a channel's game.

        Returns:
            Dictionary with progress info, None if the channel has no game
        """
        game = self._games.get(channel_id)
        if game is None or game.session.state is None:
            return None

        state = game.session.state
        return {
            'quiz_name': game.quiz_name,
            'owner_id': game.owner_id,
            'current_question': state.current_index + 1,
            'total_questions': state.total_questions,
            'score': state.score,
            'lives': state.lives,
            'time_remaining': state.time_remaining,
            'streak': state.consecutive_correct,
            'active_modifiers': [describe_modifier(modifier) for modifier in state.active_modifiers],
            'terminal': state.terminal.value,
            'start_time': game.start_time,
        }

    def get_session_status_summary(self, channel_id: int) -> str:
        """
        Get a human-readable summary of a channel's game.

        Returns:
            Formatted string describing the game status
        """
        progress = self.get_session_progress(channel_id)
        if progress is None:
            return "No active quiz session in this channel."

        status_parts = [
            f"Quiz: {progress['quiz_name']}",
            f"Progress: {progress['current_question']}/{progress['total_questions']}",
            f"Score: {progress['score']}",
            f"Lives: {progress['lives']}",
            f"Streak: {progress['streak']}",
        ]
        if progress['active_modifiers']:
            status_parts.append(f"Power-ups: {', '.join(progress['active_modifiers'])}")
        return " | ".join(status_parts)

    def get_error_summary(self, channel_id: int) -> Dict[str, Any]:
        """Get error information recorded for a channel."""
        return {
            'channel_id': channel_id,
            'errors': self._session_errors.get(channel_id, []),
            'error_count': len(self._session_errors.get(channel_id, [])),
            'has_errors': channel_id in self._session_errors
        }

    async def start_quiz_presentation(self, channel_id: int, channel: discord.abc.Messageable) -> bool:
        """
        Present the first question of a freshly started game.

        Returns:
            True if the question was presented, False otherwise
        """
        game = self._games.get(channel_id)
        if game is None or not game.session.is_active:
            return False

        game.channel = channel
        message = await self.present_question(channel_id)
        if message is None:
            self.stop_quiz(channel_id)
            return False
        return True

    async def present_question(self, channel_id: int) -> Optional[discord.Message]:
        """
        Send the current question with answer buttons and start its countdown.

        Returns:
            Discord message object if the question was presented, None otherwise
        """
        game = self._games.get(channel_id)
        if game is None or not game.session.is_active or game.channel is None:
            self.logger.debug(f"Cannot present question for channel {channel_id}: invalid session state")
            return None

        question = game.session.current_question
        try:
            message = await game.channel.send(
                embed=self.build_question_embed(game),
                view=AnswerView(self, channel_id, question.options)
            )
        except discord.HTTPException as e:
            self.logger.error(f"Discord HTTP error sending question message for channel {channel_id}: {e}")
            self._record_error(channel_id, f"present_question: {e}")
            return None

        game.message = message
        game.accepting_input = True
        self.quiz_engine.start_timer(str(channel_id), lambda: self._on_tick(channel_id, game))
        self.logger.debug(
            f"Presented question {game.session.state.current_index + 1} for channel {channel_id}",
            extra={
                'event_type': 'question_presented',
                'channel_id': channel_id,
                'question_id': question.id,
            }
        )
        return message

    def submit_answer(self, channel_id: int, user_id: int, option_index: int) -> Dict[str, Any]:
        """
        Handle a click on one of the answer buttons.

        The reveal and the next question are scheduled in the background so
        the button interaction can be acknowledged right away.

        Returns:
            Dictionary with success status and a user-facing message on rejection
        """
        game = self._games.get(channel_id)
        if game is None or not game.session.is_active:
            return {
                'success': False,
                'error': "No active game",
                'user_message': "ℹ️ This quiz is no longer running."
            }
        if user_id != game.owner_id:
            return {
                'success': False,
                'error': "Answer from a non-player",
                'user_message': "🚫 Only the player who started this quiz can answer."
            }
        if not game.accepting_input:
            self.logger.debug(f"Ignored answer during reveal in channel {channel_id}")
            return {
                'success': False,
                'error': "Answer during reveal",
                'user_message': "⏳ Hold on, the next question is on its way."
            }

        game.accepting_input = False
        question = game.session.current_question
        result = game.session.submit_answer(option_index)
        if result is None:
            game.accepting_input = True
            return {
                'success': False,
                'error': f"Answer {option_index} was rejected",
                'user_message': "❌ That answer could not be accepted."
            }

        self.quiz_engine.cancel_timer(str(channel_id))
        self._schedule_reveal(game, question, result, game.session.config.answer_reveal_delay)
        return {'success': True, 'result': result}

    async def _on_tick(self, channel_id: int, game: ChannelGame) -> bool:
        """Timer callback; returning False stops the channel's timer."""
        if self._games.get(channel_id) is not game or not game.accepting_input:
            return False

        question = game.session.current_question
        result = game.session.tick()
        if result is not None:
            game.accepting_input = False
            self._schedule_reveal(game, question, result, game.session.config.timeout_reveal_delay)
            return False

        await self._update_timer_message(game)
        return True

    def _schedule_reveal(self, game: ChannelGame, question: Question, result: AnswerResult, delay: float) -> None:
        task = asyncio.create_task(self._reveal_answer(game, question, result, delay))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _update_timer_message(self, game: ChannelGame) -> None:
        if game.message is None:
            return
        try:
            await game.message.edit(embed=self.build_question_embed(game))
        except discord.HTTPException as e:
            self.logger.error(f"Failed to update timer message: {e}")

    async def _reveal_answer(self, game: ChannelGame, question: Question, result: AnswerResult, delay: float) -> None:
        """
        Show the resolved answer, wait, then continue or finish the game.

        Args:
            game: Game the answer belongs to
            question: Question that was resolved
            result: Resolution returned by the session
            delay: Seconds to keep the answer on screen
        """
        channel_id = game.channel_id
        try:
            if game.message is not None:
                await game.message.edit(
                    embed=self.build_reveal_embed(question, result, game.session.rng),
                    view=None
                )

            await asyncio.sleep(delay)

            # the game may have been stopped while the answer was on screen
            if self._games.get(channel_id) is not game:
                return

            if game.session.is_active:
                await self.present_question(channel_id)
            else:
                await self._send_completion_summary(game)

        except discord.HTTPException as e:
            self.logger.error(f"Failed to reveal answer: {e}")
            self._record_error(channel_id, f"reveal_answer: {e}")
        except Exception as e:
            self.logger.error(f"Unexpected error in _reveal_answer for channel {channel_id}: {e}", exc_info=True)
            self._record_error(channel_id, f"reveal_answer: {e}")
            self.quiz_engine.cancel_timer(str(channel_id))

    async def _send_completion_summary(self, game: ChannelGame) -> None:
        """Send the final results and release the channel."""
        if self._games.get(game.channel_id) is game:
            del self._games[game.channel_id]

        outcome = game.session.outcome
        if outcome is None:
            return
        try:
            await game.channel.send(embed=self.build_completion_embed(game, outcome))
        except discord.HTTPException as e:
            self.logger.error(f"Failed to send completion summary: {e}")
            try:
                await game.channel.send(f"🏁 Quiz over! Final score: {outcome.final_score}")
            except discord.HTTPException:
                self.logger.error("Failed to send fallback completion message")

    def build_question_embed(self, game: ChannelGame) -> discord.Embed:
        """Render the current question with the player's status."""
        state = game.session.state
        question = game.session.current_question
        remaining = state.time_remaining

        if remaining > 10:
            color = COLOR_QUESTION
        elif remaining > 5:
            color = COLOR_WARNING
        else:
            color = COLOR_DANGER

        tier_icon = TIER_ICONS.get(question.difficulty_tier, "")
        embed = discord.Embed(
            title=f"🎯 Question {state.current_index + 1}/{state.total_questions}",
            description=question.prompt,
            color=color
        )
        embed.add_field(
            name="📝 Options",
            value="\n".join(
                f"**{OPTION_LABELS[index]}.** {option}" for index, option in enumerate(question.options)
            ),
            inline=False
        )
        embed.add_field(name="⏱️ Time", value=format_time(remaining), inline=True)
        embed.add_field(name="❤️ Lives", value=render_lives(state.lives), inline=True)
        embed.add_field(name="🏆 Score", value=str(state.score), inline=True)
        embed.add_field(
            name=f"{tier_icon} Difficulty",
            value=f"{question.difficulty_tier.value.title()} ({question.base_points} pts)",
            inline=True
        )
        embed.add_field(name="🔥 Streak", value=str(state.consecutive_correct), inline=True)
        if state.active_modifiers:
            embed.add_field(
                name="✨ Power-ups",
                value="\n".join(describe_modifier(modifier) for modifier in state.active_modifiers),
                inline=False
            )
        embed.set_footer(text=f"{game.quiz_name} • ⚡ Time running out!" if remaining <= 5 else game.quiz_name)
        return embed

    def build_reveal_embed(self, question: Question, result: AnswerResult, rng=None) -> discord.Embed:
        """Render the resolution of one question."""
        state = result.state
        if result.correct:
            feedback = pick_encouragement(state.consecutive_correct, rng or random)
        elif result.timed_out:
            feedback = TIMEOUT_LINE
        else:
            feedback = WRONG_ANSWER_LINE
        description = f"*{feedback}*\n\n{question.prompt}"
        correct_text = f"**{OPTION_LABELS[result.correct_index]}.** {question.options[result.correct_index]}"

        if result.correct:
            embed = discord.Embed(
                title=f"✅ Correct! +{result.points_earned} points",
                description=description,
                color=COLOR_CORRECT
            )
        elif result.timed_out:
            embed = discord.Embed(title="⏰ Time's Up!", description=description, color=COLOR_DANGER)
        else:
            embed = discord.Embed(title="❌ Wrong Answer", description=description, color=COLOR_DANGER)

        embed.add_field(name="✅ Correct Answer", value=correct_text, inline=False)
        if question.explanation:
            embed.add_field(name="💡 Explanation", value=question.explanation, inline=False)

        if result.immunity_used:
            embed.add_field(name="⭐ Immunity", value="Star Power saved your life!", inline=False)
        elif not result.correct:
            embed.add_field(name="💔 Life Lost", value=render_lives(state.lives), inline=False)

        if result.power_up_granted is not None:
            power_up = result.power_up_granted
            embed.add_field(
                name=f"{power_up.icon} Power-up: {power_up.name}",
                value=power_up.description,
                inline=False
            )

        embed.add_field(name="🏆 Score", value=str(state.score), inline=True)
        embed.add_field(name="❤️ Lives", value=render_lives(state.lives), inline=True)
        if state.is_terminal:
            embed.set_footer(text="That was the last one! Results coming up...")
        else:
            embed.set_footer(text="Next question coming up")
        return embed

    def build_completion_embed(self, game: ChannelGame, outcome: SessionOutcome) -> discord.Embed:
        """Render the end-of-game summary."""
        if outcome.terminal is TerminalState.WON:
            embed = discord.Embed(
                title="🎉 Quiz Complete!",
                description=f"**{game.quiz_name}** cleared with lives to spare!",
                color=COLOR_GOLD if outcome.is_new_best else COLOR_QUESTION
            )
        else:
            embed = discord.Embed(
                title="💀 Game Over",
                description=f"You ran out of lives in **{game.quiz_name}**.",
                color=COLOR_GOLD if outcome.is_new_best else COLOR_DANGER
            )

        duration = datetime.now() - game.start_time
        minutes = int(duration.total_seconds() // 60)
        seconds = int(duration.total_seconds() % 60)
        accuracy = (
            round(outcome.correct_answers / outcome.questions_answered * 100)
            if outcome.questions_answered else 0
        )
        embed.add_field(
            name="📊 Final Stats",
            value=(
                f"Score: **{outcome.final_score}**\n"
                f"Correct: {outcome.correct_answers}/{outcome.questions_answered} ({accuracy}%)\n"
                f"Duration: {minutes}m {seconds}s"
            ),
            inline=False
        )
        if outcome.is_new_best:
            embed.add_field(name="🏅 New Best Score!", value=str(outcome.final_score), inline=False)
        else:
            embed.add_field(name="🏅 Best Score", value=str(self.get_best_score()), inline=False)

        embed.set_footer(text="Thanks for playing! Use /play to begin a new quiz.")
        return embed

    def _record_error(self, channel_id: int, message: str) -> None:
        self._session_errors.setdefault(channel_id, []).append(message)

    def _handle_session_error(self, channel_id: int, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Log a failed operation and build the result dictionary for it.

        Returns:
            Dictionary with error handling results
        """
        error_msg = f"Error in {operation} for channel {channel_id}: {error}"
        if isinstance(error, (QuizControllerError, InputError, ValueError)):
            self.logger.warning(error_msg)
        else:
            self.logger.error(error_msg, exc_info=True)
        self._record_error(channel_id, f"{operation}: {error}")

        return {
            'success': False,
            'error': str(error),
            'operation': operation,
            'user_message': self._get_user_friendly_error_message(error, operation)
        }

    def _get_user_friendly_error_message(self, error: Exception, operation: str) -> str:
        if isinstance(error, SessionConflictError):
            return "❌ A quiz is already running in this channel. Please stop it first with `/quit`."
        if isinstance(error, SessionNotFoundError):
            return "❌ No active quiz found in this channel. Start a quiz with `/play`."
        if isinstance(error, InputError):
            return f"❌ This quiz file is invalid: {error}"
        if isinstance(error, ValueError):
            return f"❌ {error}"
        return f"❌ An unexpected error occurred during {operation}. Please try again."

    def cancel_all(self) -> int:
        """Stop every game, returning how many were running."""
        channel_ids = list(self._games.keys())
        for channel_id in channel_ids:
            self.stop_quiz(channel_id)
        for task in list(self._background_tasks):
            task.cancel()
        return len(channel_ids)


def render_lives(lives: int) -> str:
    """Render lives as hearts."""
    return "❤️" * lives if lives > 0 else "💔"


def describe_modifier(modifier) -> str:
    """Describe an active modifier with what is left of it."""
    definition = modifier.definition
    if modifier.is_usage_based:
        remaining = f"{modifier.remaining_uses} use{'s' if modifier.remaining_uses != 1 else ''} left"
    elif modifier.is_time_based:
        remaining = f"{modifier.remaining_time}s left"
    else:
        remaining = "active"
    return f"{definition.icon} {definition.name} ({remaining})"


def pick_encouragement(consecutive_correct: int, rng) -> str:
    """Pick a cheer for a correct answer; a streak of five unlocks the full list."""
    pool = ENCOURAGEMENTS if consecutive_correct >= ENCOURAGEMENT_STREAK else ENCOURAGEMENTS[:5]
    return pool[min(int(rng.random() * len(pool)), len(pool) - 1)]
