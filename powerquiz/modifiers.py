"""
Active modifier bookkeeping for play sessions.
Tracks granted power-ups, decays them per tick or per scored answer and
prunes the ones that have run out.
"""
import logging
from dataclasses import replace
from typing import Iterable, Iterator, Tuple

from .models import ActiveModifier, PowerUpDefinition, PowerUpKind
from .scoring import combined_multiplier

logger = logging.getLogger(__name__)

DOUBLE_POINTS_USES = 3


class ActiveModifierSet:
    """
    Immutable collection of modifiers currently in effect.

    Every operation returns a new set, so a session snapshot can hold one
    without it changing underneath the renderer.
    """

    def __init__(self, modifiers: Iterable[ActiveModifier] = ()):
        self._modifiers: Tuple[ActiveModifier, ...] = tuple(
            modifier for modifier in modifiers if not modifier.is_expired
        )

    def __iter__(self) -> Iterator[ActiveModifier]:
        return iter(self._modifiers)

    def __len__(self) -> int:
        return len(self._modifiers)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ActiveModifierSet):
            return NotImplemented
        return self._modifiers == other._modifiers

    def __repr__(self) -> str:
        return f"ActiveModifierSet({list(self._modifiers)!r})"

    @property
    def modifiers(self) -> Tuple[ActiveModifier, ...]:
        return self._modifiers

    def admit(self, definition: PowerUpDefinition) -> "ActiveModifierSet":
        """
        Add a newly granted power-up.

        Args:
            definition: Catalog entry that was granted

        Returns:
            New set including the modifier

        Raises:
            ValueError: If the power-up is instantaneous (extra life)
        """
        if definition.is_instant:
            raise ValueError(f"Power-up {definition.id} is instantaneous and cannot be active")

        if definition.kind is PowerUpKind.DOUBLE_POINTS:
            modifier = ActiveModifier(definition=definition, remaining_uses=DOUBLE_POINTS_USES)
        else:
            modifier = ActiveModifier(definition=definition, remaining_time=definition.duration_seconds)

        logger.debug(
            f"Admitted modifier {definition.id}",
            extra={
                'event_type': 'modifier_admitted',
                'power_up_id': definition.id,
                'remaining_time': modifier.remaining_time,
                'remaining_uses': modifier.remaining_uses,
            }
        )
        return ActiveModifierSet(self._modifiers + (modifier,))

    def advance(self, seconds: int = 1) -> "ActiveModifierSet":
        """Advance time-based modifiers and drop the ones that ran out."""
        advanced = []
        for modifier in self._modifiers:
            if modifier.is_time_based:
                modifier = replace(modifier, remaining_time=max(modifier.remaining_time - seconds, 0))
                if modifier.is_expired:
                    self._log_expired(modifier, "time")
                    continue
            advanced.append(modifier)
        return ActiveModifierSet(advanced)

    def consume_use(self) -> "ActiveModifierSet":
        """Spend one use of every usage-based modifier after a scored answer."""
        consumed = []
        for modifier in self._modifiers:
            if modifier.is_usage_based:
                modifier = replace(modifier, remaining_uses=max(modifier.remaining_uses - 1, 0))
                if modifier.is_expired:
                    self._log_expired(modifier, "uses")
                    continue
            consumed.append(modifier)
        return ActiveModifierSet(consumed)

    def has_immunity(self) -> bool:
        return any(m.definition.kind is PowerUpKind.IMMUNITY for m in self._modifiers)

    def multiplier(self) -> float:
        return combined_multiplier(self._modifiers)

    @staticmethod
    def _log_expired(modifier: ActiveModifier, reason: str) -> None:
        logger.debug(
            f"Modifier {modifier.definition.id} expired ({reason})",
            extra={
                'event_type': 'modifier_expired',
                'power_up_id': modifier.definition.id,
                'reason': reason,
            }
        )
