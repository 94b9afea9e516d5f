"""Day windows for faucet quotas.

A quota window is the half-open interval ``[start_of_day, start_of_next_day)``
in an explicitly configured timezone. The clock is injected so that tests and
replays can pin "now".
"""

import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

OFFSET_PATTERN = re.compile(r"^([+-])(\d{2}):?(\d{2})$")
LOCALTIME_PATH = "/etc/localtime"


def parse_timezone(value: str) -> tzinfo:
    """Parse a timezone setting.

    Parameters
    ----------
    value : str
        ``UTC``, ``local``, an IANA zone name such as ``Asia/Shanghai``, or a
        fixed offset such as ``+08:00``.

    Returns
    -------
    tzinfo
        The timezone to compute day boundaries in.

    Raises
    ------
    ValueError
        If the value is not a recognised timezone.
    """
    value = value.strip()
    if value.upper() in ("UTC", "Z"):
        return timezone.utc
    if value.lower() == "local":
        return local_timezone()
    if match := OFFSET_PATTERN.match(value):
        sign, hours, minutes = match.groups()
        offset = timedelta(hours=int(hours), minutes=int(minutes))
        if offset >= timedelta(hours=24):
            raise ValueError(f"Invalid timezone offset: {value!r}")
        return timezone(-offset if sign == "-" else offset)
    try:
        return ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {value!r}") from None


def local_timezone() -> tzinfo:
    """Resolve the host timezone as a zone that follows DST changes.

    ``TZ`` is tried first, then the system ``/etc/localtime`` database file.
    Hosts with neither get the current fixed UTC offset, which does not move
    when DST starts or ends.
    """
    name = os.environ.get("TZ", "").lstrip(":")
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            # POSIX rule strings such as "EST5" are not zone names
            pass
    try:
        with open(LOCALTIME_PATH, "rb") as f:
            return ZoneInfo.from_file(f, key="localtime")
    except (OSError, ValueError):
        return datetime.now().astimezone().tzinfo


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Window:
    """A single day window."""

    start: datetime
    end: datetime

    @property
    def key(self) -> str:
        """Calendar date of the window, used to bucket usage counters."""
        return self.start.date().isoformat()

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    def to_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


class DayWindowPolicy:
    """Computes day windows in a fixed timezone.

    Parameters
    ----------
    tz : tzinfo
        Timezone whose midnight bounds a quota day.
    clock : Callable[[], datetime]
        Returns the current aware datetime. Defaults to the system clock.
    """

    def __init__(self, tz: tzinfo = timezone.utc, clock: Callable[[], datetime] = utc_now):
        self._tz = tz
        self._clock = clock

    def now(self) -> datetime:
        """Current time in the window timezone."""
        return self._clock().astimezone(self._tz)

    def window_for(self, moment: datetime) -> Window:
        """Return the day window containing ``moment``."""
        local_day = self.localize(moment).date()
        return Window(
            start=self._midnight(local_day),
            end=self._midnight(local_day + timedelta(days=1)),
        )

    def current(self) -> Window:
        """Return today's window."""
        return self.window_for(self.now())

    def localize(self, moment: datetime) -> datetime:
        """Convert ``moment`` to the window timezone, reading naive values as local to it."""
        if moment.tzinfo is None:
            return moment.replace(tzinfo=self._tz)
        return moment.astimezone(self._tz)

    def parse_timestamp(self, value) -> datetime:
        """Parse a timestamp given as a datetime, ISO-8601 string or epoch seconds.

        Raises
        ------
        ValueError
            If the value cannot be interpreted as a point in time.
        """
        if isinstance(value, datetime):
            return self.localize(value)
        if isinstance(value, bool):
            raise ValueError("timestamp must be an ISO-8601 string or epoch seconds")
        if isinstance(value, (int, float, Decimal)):
            return self._from_epoch(value)
        if isinstance(value, str):
            text = value.strip()
            try:
                seconds = Decimal(text)
            except InvalidOperation:
                seconds = None
            if seconds is not None:
                return self._from_epoch(seconds)
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            try:
                return self.localize(datetime.fromisoformat(text))
            except ValueError:
                raise ValueError(f"Invalid timestamp: {value!r}") from None
        raise ValueError("timestamp must be an ISO-8601 string or epoch seconds")

    def _from_epoch(self, seconds) -> datetime:
        try:
            moment = datetime.fromtimestamp(float(seconds), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise ValueError(f"Invalid timestamp: {seconds!r}") from None
        return moment.astimezone(self._tz)

    def _midnight(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self._tz)
