"""Cache entries, their expiration rules and their stored document form."""

from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

from bucketcache.exceptions import EntryFormatError

CONTENT_TYPE = "application/json"

_TIMESPAN_PATTERN = re.compile(
    r"^(?P<sign>-)?(?:(?P<days>\d+)\.)?(?P<hours>\d{1,2}):(?P<minutes>\d{1,2}):(?P<seconds>\d{1,2})"
    r"(?:\.(?P<fraction>\d{1,7}))?$"
)
_EXTRA_FRACTION_DIGITS = re.compile(r"(\.\d{6})\d+")
_EARLIEST = datetime.min.replace(tzinfo=UTC)
_LATEST = datetime.max.replace(tzinfo=UTC)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime, reading naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def add_duration(moment: datetime, duration: timedelta) -> datetime:
    """Return ``moment + duration``, saturating at the representable range."""
    try:
        return moment + duration
    except OverflowError:
        return _LATEST if duration > timedelta(0) else _EARLIEST


@dataclass
class CacheEntryOptions:
    """Expiration settings supplied with a write.

    Attributes:
        absolute_expiration: Point in time after which the entry is invalid
        absolute_expiration_relative_to_now: Same, expressed as an offset from the write
        sliding_expiration: Idle period after which the entry is invalid
    """

    absolute_expiration: Optional[datetime] = None
    absolute_expiration_relative_to_now: Optional[timedelta] = None
    sliding_expiration: Optional[timedelta] = None

    def __post_init__(self) -> None:
        if self.absolute_expiration is not None:
            self.absolute_expiration = as_utc(self.absolute_expiration)
        if self.absolute_expiration_relative_to_now is not None and self.absolute_expiration_relative_to_now <= timedelta(0):
            raise ValueError("absolute_expiration_relative_to_now must be positive")
        if self.sliding_expiration is not None and self.sliding_expiration <= timedelta(0):
            raise ValueError("sliding_expiration must be positive")

    def resolve_absolute_expiration(self, now: datetime) -> Optional[datetime]:
        """Collapse both absolute forms into one timestamp; the earlier one wins."""
        candidates = []
        if self.absolute_expiration is not None:
            candidates.append(self.absolute_expiration)
        if self.absolute_expiration_relative_to_now is not None:
            candidates.append(add_duration(as_utc(now), self.absolute_expiration_relative_to_now))
        return min(candidates) if candidates else None


@dataclass
class CacheEntry:
    """The unit persisted per key.

    Attributes:
        value: Cached payload, never inspected
        created_at: Write or last refresh time, anchor for sliding expiration
        absolute_expiration: Hard expiry
        sliding_expiration: Expiry measured from ``created_at``
    """

    value: bytes
    created_at: datetime
    absolute_expiration: Optional[datetime] = None
    sliding_expiration: Optional[timedelta] = None

    @classmethod
    def create(
        cls,
        value: bytes,
        options: Optional[CacheEntryOptions],
        now: datetime,
    ) -> "CacheEntry":
        options = options or CacheEntryOptions()
        return cls(
            value=bytes(value),
            created_at=as_utc(now),
            absolute_expiration=options.resolve_absolute_expiration(now),
            sliding_expiration=options.sliding_expiration,
        )

    def touch(self, now: datetime) -> "CacheEntry":
        """Return a copy re-anchored at ``now``; never moves ``created_at`` back."""
        now = as_utc(now)
        if now <= self.created_at:
            return self
        return replace(self, created_at=now)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "Value": base64.b64encode(self.value).decode("ascii"),
            "CreatedAt": self.created_at.isoformat(),
        }
        if self.absolute_expiration is not None:
            data["AbsoluteExpiration"] = self.absolute_expiration.isoformat()
        if self.sliding_expiration is not None:
            data["SlidingExpiration"] = format_timespan(self.sliding_expiration)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        absolute = data.get("AbsoluteExpiration")
        sliding = data.get("SlidingExpiration")
        return cls(
            value=base64.b64decode(data["Value"], validate=True),
            created_at=parse_timestamp(data["CreatedAt"]),
            absolute_expiration=parse_timestamp(absolute) if absolute is not None else None,
            sliding_expiration=parse_timespan(sliding) if sliding is not None else None,
        )


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, dropping sub-microsecond digits."""
    return as_utc(datetime.fromisoformat(_EXTRA_FRACTION_DIGITS.sub(r"\1", value, count=1)))


def is_expired(entry: CacheEntry, now: datetime) -> bool:
    now = as_utc(now)
    if entry.absolute_expiration is not None and now >= entry.absolute_expiration:
        return True
    if entry.sliding_expiration is not None and now >= add_duration(entry.created_at, entry.sliding_expiration):
        return True
    return False


def format_timespan(value: timedelta) -> str:
    """Render a duration as ``[-][d.]hh:mm:ss[.fffffff]``."""
    sign = "-" if value < timedelta(0) else ""
    value = abs(value)
    hours, remainder = divmod(value.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    text = f"{sign}{value.days}." if value.days else sign
    text += f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    if value.microseconds:
        text += f".{value.microseconds * 10:07d}"
    return text


def parse_timespan(value: Any) -> timedelta:
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    match = _TIMESPAN_PATTERN.match(str(value))
    if match is None:
        raise ValueError(f"invalid duration: {value!r}")
    hours, minutes, seconds = (int(match.group(name)) for name in ("hours", "minutes", "seconds"))
    if hours > 23 or minutes > 59 or seconds > 59:
        raise ValueError(f"invalid duration: {value!r}")
    ticks = int((match.group("fraction") or "0").ljust(7, "0"))
    result = timedelta(
        days=int(match.group("days") or 0),
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        microseconds=ticks // 10,
    )
    return -result if match.group("sign") else result


def serialize_entry(entry: CacheEntry) -> bytes:
    return json.dumps(entry.to_dict(), separators=(",", ":")).encode("utf-8")


def deserialize_entry(payload: bytes) -> CacheEntry:
    try:
        data = json.loads(payload.decode("utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        return CacheEntry.from_dict(data)
    except (UnicodeDecodeError, binascii.Error, ValueError, TypeError, KeyError, OverflowError) as exc:
        raise EntryFormatError(f"unreadable cache entry: {exc}") from exc
