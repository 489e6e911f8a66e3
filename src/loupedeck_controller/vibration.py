"""Haptic feedback patterns."""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)

# Alternating on/off durations in milliseconds
VIBRATION_PATTERNS: dict[str, list[int]] = {
    "tap": [30],
    "double_tap": [30, 50, 30],
    "success": [50, 80, 50],
    "error": [200],
    "warning": [100, 80, 100],
    "connect": [30, 50, 50, 50, 70],
    "long_press": [150],
    "notification": [50, 100, 50, 100, 50],
}


class Vibrator(Protocol):
    async def vibrate(self, pattern: list[int]) -> None: ...


class Vibration:
    """Plays named vibration patterns. Failures are logged and ignored."""

    def __init__(self, target: Vibrator, enabled: bool = True) -> None:
        """Initialize the player.

        Args:
            target: Anything with an async `vibrate(pattern)`, normally the device session.
            enabled: When False patterns are validated but not played.
        """
        self._target = target
        self.enabled = enabled

    async def vibrate_pattern(self, name: str) -> None:
        """Play a pattern from VIBRATION_PATTERNS by name."""
        pattern = VIBRATION_PATTERNS.get(name)
        if pattern is None:
            logger.warning("Unknown vibration pattern: %s", name)
            return
        if not self.enabled:
            return
        try:
            await self._target.vibrate(pattern)
        except Exception as e:
            logger.warning("Vibration failed: %s", e)
