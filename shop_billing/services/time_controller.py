"""Clock used for every "now" the engine needs.

In production the clock follows real UTC time. Tests and local runs can pin
it to a virtual instant and move it forward explicitly, the same way a
subscription term would be observed days or months later.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from shop_billing.logging_config import get_logger
from shop_billing.utils.billing_period import ensure_utc

logger = get_logger(__name__)


class TimeController:
    """Real or virtual UTC clock.

    Args:
        frozen_at: When given, time stands still at this instant until advanced.
            When omitted, time follows the system clock (plus any offset).
    """

    def __init__(self, frozen_at: Optional[datetime] = None) -> None:
        self._lock = threading.RLock()
        self._frozen_at = ensure_utc(frozen_at) if frozen_at is not None else None
        self._offset = timedelta(0)

    @property
    def is_frozen(self) -> bool:
        return self._frozen_at is not None

    def now(self) -> datetime:
        """Current (possibly virtual) time as an aware UTC datetime."""
        with self._lock:
            if self._frozen_at is not None:
                return self._frozen_at + self._offset
            return datetime.now(timezone.utc) + self._offset

    def advance_time(self, days: int = 0, hours: int = 0, minutes: int = 0) -> datetime:
        """Move the clock forward.

        Returns:
            The new current time

        Raises:
            ValueError: If any value is negative
        """
        if days < 0 or hours < 0 or minutes < 0:
            raise ValueError("Cannot advance time backwards, negative values are not allowed")

        step = timedelta(days=days, hours=hours, minutes=minutes)
        with self._lock:
            old_time = self.now()
            self._offset += step
            new_time = self.now()

        logger.info(
            "time_advanced",
            old_time=old_time.isoformat(),
            new_time=new_time.isoformat(),
            days=days,
            hours=hours,
            minutes=minutes,
        )
        return new_time

    def set_time(self, instant: datetime) -> datetime:
        """Pin the clock to a specific instant (not earlier than the current time).

        Raises:
            ValueError: If the instant is before the current time
        """
        instant = ensure_utc(instant)
        with self._lock:
            old_time = self.now()
            if instant < old_time:
                raise ValueError(
                    f"Cannot set time backwards, current: {old_time.isoformat()}, "
                    f"requested: {instant.isoformat()}"
                )
            self._frozen_at = instant
            self._offset = timedelta(0)

        logger.info("time_set", old_time=old_time.isoformat(), new_time=instant.isoformat())
        return instant

    def reset_time(self) -> datetime:
        """Return to real system time."""
        with self._lock:
            self._frozen_at = None
            self._offset = timedelta(0)
        return self.now()
