"""
Tick scheduling for the Power-Up Quiz bot.
Runs one asyncio ticker per channel that calls back into the session driver
once per elapsed second.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[Any]]


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_created(channel_id: str, interval: float) -> None:
        logger.info(
            f"Timer lifecycle: CREATED - Channel {channel_id}, Interval {interval}s",
            extra={
                'event_type': 'timer_created',
                'channel_id': channel_id,
                'interval': interval,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_tick(channel_id: str, tick_count: int) -> None:
        """Log tick events (throttled to avoid spam)."""
        if tick_count % 10 == 0:
            logger.debug(
                f"Timer lifecycle: TICK - Channel {channel_id}, Tick {tick_count}",
                extra={
                    'event_type': 'timer_tick',
                    'channel_id': channel_id,
                    'tick_count': tick_count,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_completion(channel_id: str, completion_type: str, tick_count: int) -> None:
        """Log timer completion (stopped by callback or cancelled)."""
        logger.info(
            f"Timer lifecycle: COMPLETED - Channel {channel_id}, Type {completion_type}, Ticks {tick_count}",
            extra={
                'event_type': 'timer_completed',
                'channel_id': channel_id,
                'completion_type': completion_type,
                'tick_count': tick_count,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_state_transition(channel_id: str, from_state: str, to_state: str, reason: str = None) -> None:
        logger.info(
            f"Timer lifecycle: STATE_TRANSITION - Channel {channel_id}, {from_state} -> {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'timer_state_transition',
                'channel_id': channel_id,
                'from_state': from_state,
                'to_state': to_state,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(channel_id: str, error_type: str, error_message: str, operation: str) -> None:
        logger.error(
            f"Timer lifecycle: ERROR - Channel {channel_id}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'channel_id': channel_id,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )


class QuizTimer:
    """Calls a tick callback once per interval until stopped."""

    def __init__(self, channel_id: str = None, interval: float = 1.0):
        self._task: Optional[asyncio.Task] = None
        self._is_cancelled = False
        self._channel_id = channel_id
        self._interval = interval
        self._tick_count = 0

    async def run(self, tick_callback: TickCallback) -> None:
        """
        Tick until cancelled or until the callback returns False.

        Args:
            tick_callback: Awaited once per interval
        """
        self._is_cancelled = False
        completion_type = "cancelled"

        try:
            while not self._is_cancelled:
                await asyncio.sleep(self._interval)
                if self._is_cancelled:
                    break

                self._tick_count += 1
                TimerLifecycleLogger.log_timer_tick(self._channel_id, self._tick_count)
                keep_running = await tick_callback()
                if keep_running is False:
                    completion_type = "stopped_by_callback"
                    break

            TimerLifecycleLogger.log_timer_completion(self._channel_id, completion_type, self._tick_count)

        except asyncio.CancelledError:
            self._is_cancelled = True
            TimerLifecycleLogger.log_timer_completion(self._channel_id, "asyncio_cancelled", self._tick_count)
            raise
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(self._channel_id, "tick_execution_error", str(e), "run")
            raise

    def cancel(self) -> None:
        """Stop ticking and cancel the backing task if it is still running."""
        self._is_cancelled = True
        if self._task and not self._task.done():
            self._task.cancel()
            TimerLifecycleLogger.log_timer_state_transition(
                self._channel_id, "running", "cancelled", "task cancelled"
            )

    @property
    def is_cancelled(self) -> bool:
        return self._is_cancelled

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._is_cancelled


class QuizEngine:
    """Owns the per-channel tick timers."""

    def __init__(self, interval: float = 1.0):
        self.interval = interval
        self._timers: Dict[str, QuizTimer] = {}

    def start_timer(self, channel_id: str, tick_callback: TickCallback) -> QuizTimer:
        """
        Start ticking for a channel, replacing any timer it already has.

        Must be called from a running event loop.

        Args:
            channel_id: Discord channel identifier
            tick_callback: Awaited once per second; returning False stops the timer

        Returns:
            The started QuizTimer
        """
        if self.cancel_timer(channel_id):
            logger.debug(f"Replaced existing timer for channel {channel_id}")

        timer = QuizTimer(channel_id, self.interval)
        timer._task = asyncio.create_task(timer.run(tick_callback))
        timer._task.add_done_callback(lambda task: self._forget_timer(channel_id, timer, task))
        self._timers[channel_id] = timer

        TimerLifecycleLogger.log_timer_created(channel_id, self.interval)
        return timer

    def _forget_timer(self, channel_id: str, timer: QuizTimer, task: asyncio.Task) -> None:
        if self._timers.get(channel_id) is timer:
            del self._timers[channel_id]
        if not task.cancelled() and task.exception() is not None:
            TimerLifecycleLogger.log_timer_error(
                channel_id, "task_failed", str(task.exception()), "timer_task_execution"
            )

    def cancel_timer(self, channel_id: str) -> bool:
        """
        Cancel the timer for a channel.

        Returns:
            True if a timer was cancelled, False if the channel had none
        """
        timer = self._timers.pop(channel_id, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def has_timer(self, channel_id: str) -> bool:
        timer = self._timers.get(channel_id)
        return timer is not None and timer.is_running

    def get_timer_status(self, channel_id: str) -> Optional[dict]:
        """Get a status dictionary for a channel's timer, or None if it has none."""
        timer = self._timers.get(channel_id)
        if timer is None:
            return None
        return {
            'is_cancelled': timer.is_cancelled,
            'is_running': timer.is_running,
            'tick_count': timer.tick_count,
        }

    def cancel_all(self) -> int:
        """Cancel every timer, returning how many were running."""
        channel_ids = list(self._timers.keys())
        for channel_id in channel_ids:
            self.cancel_timer(channel_id)
        return len(channel_ids)
