"""
Access token value type.
"""

import time
from dataclasses import dataclass, field
from typing import Optional


def current_time_millis() -> int:
    """Wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class AccessToken:
    """
    Opaque bearer credential with an absolute expiration.

    Attributes:
        token: The bearer token value
        expiration_time_millis: Expiration as epoch milliseconds
    """

    token: str = field(repr=False)
    expiration_time_millis: int

    def expires_in_millis(self, now_millis: Optional[int] = None) -> int:
        """Milliseconds left before expiration (negative once expired)."""
        if now_millis is None:
            now_millis = current_time_millis()
        return self.expiration_time_millis - now_millis

    def is_expired(self, now_millis: Optional[int] = None, skew_millis: int = 0) -> bool:
        """
        Check whether the token has expired.

        Args:
            now_millis: Current time as epoch milliseconds (defaults to now)
            skew_millis: Treat the token as expired this many milliseconds early

        Returns:
            True if the token is expired or within the skew window
        """
        return self.expires_in_millis(now_millis) <= skew_millis
