"""
Client reconnect policy for the live channel.

Clients that lose their WebSocket retry with exponential backoff:

    delay(attempt) = min(base * 2 ** attempt, max_delay)    attempt = 0, 1, ...

and give up after ``max_attempts`` tries. A connection closed with the
normal close code (1000) is not retried. The server sends the policy in
the ``connection_established`` frame so clients need no hard-coded values.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from chat.constants import PRESENCE_CONFIG


@dataclass(frozen=True)
class ReconnectPolicy:
    base_delay: float = PRESENCE_CONFIG.RECONNECT_BASE_DELAY_SECONDS
    max_delay: float = PRESENCE_CONFIG.RECONNECT_MAX_DELAY_SECONDS
    max_attempts: int = PRESENCE_CONFIG.RECONNECT_MAX_ATTEMPTS
    normal_close_code: int = PRESENCE_CONFIG.CLOSE_NORMAL

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait before reconnect attempt ``attempt`` (0-based)."""
        if attempt < 0:
            raise ValueError("attempt must be >= 0")
        return min(self.base_delay * 2**attempt, self.max_delay)

    def should_retry(self, close_code: int | None, attempt: int) -> bool:
        """
        Whether a client that saw ``close_code`` should make attempt ``attempt``.

        Args:
            close_code: Close code of the lost connection (None if the
                connection dropped without a close frame)
            attempt: 0-based number of the attempt about to be made
        """
        if close_code == self.normal_close_code:
            return False
        return attempt < self.max_attempts

    def schedule(self) -> list[float]:
        """Delays of every permitted attempt, in order."""
        return [self.delay_for(attempt) for attempt in range(self.max_attempts)]

    def as_dict(self) -> dict:
        return asdict(self)


DEFAULT_POLICY = ReconnectPolicy()
