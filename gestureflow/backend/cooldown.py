"""
Cooldowns for discrete gesture actions.

The classifier repeats the same pose for every sample while it is held, so a
single physical gesture must fire its action once. All discrete actions
share one last-action timestamp (CooldownClock); each pose kind brings its
own window and decides whether a no-op attempt still consumes it
(CooldownPolicy).
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional


def monotonic_ms() -> float:
    """Default clock: monotonic time in milliseconds."""
    return time.monotonic() * 1000.0


@dataclass(frozen=True)
class CooldownPolicy:
    """How one pose kind is debounced."""
    window_ms: float
    consume_on_noop: bool = False


class CooldownClock:
    """Shared last-action timestamp checked against per-kind windows."""

    def __init__(self, clock: Callable[[], float] = monotonic_ms):
        self._clock = clock
        self._last_action: Optional[float] = None

    @property
    def last_action(self) -> Optional[float]:
        return self._last_action

    def now(self) -> float:
        return self._clock()

    def ready(self, policy: CooldownPolicy, now: Optional[float] = None) -> bool:
        """True once more than `policy.window_ms` has passed since the last action."""
        if self._last_action is None:
            return True
        if now is None:
            now = self.now()
        return now - self._last_action > policy.window_ms

    def consume(self, now: Optional[float] = None):
        """Record an action, restarting every window."""
        self._last_action = self.now() if now is None else now

    def settle(self, policy: CooldownPolicy, acted: bool, now: Optional[float] = None):
        """Consume after an attempt according to the policy."""
        if acted or policy.consume_on_noop:
            self.consume(now)

    def reset(self):
        self._last_action = None
