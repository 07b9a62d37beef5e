# backend/booking_backend/services/slots/working_hours.py
"""
Recurring weekly working hours of a member.

Stored as JSON in members.work_schedule. Accepted shapes per day:

  "mon": [["09:00", "12:00"], ["14:00", "18:00"]]    list of ranges
  "mon": {"start": "09:00", "end": "18:00"}            single range
  "mon": {"is_open": true, "ranges": [["09:00", "12:00"]]}   canonical
  "mon": null                                          day off

Keys are day names ("mon".."sun") or weekday numbers ("0".."6", 0 = Monday).
A missing day is a day off; any other key is rejected. Written back in the
canonical shape.
"""

import json
from dataclasses import dataclass, replace
from datetime import date

from .config import MINUTES_PER_DAY, minutes_to_time_str, time_str_to_minutes
from .errors import InvalidInput

DAY_NAMES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
_DAY_KEYS = frozenset(DAY_NAMES) | {str(weekday) for weekday in range(7)}


@dataclass(frozen=True)
class DaySchedule:
    """Open/closed flag plus sorted, non-overlapping (start, end) minute ranges."""
    is_open: bool = False
    ranges: tuple[tuple[int, int], ...] = ()

    def __post_init__(self):
        ranges = tuple(sorted((int(s), int(e)) for s, e in self.ranges))
        for start, end in ranges:
            if not 0 <= start < end <= MINUTES_PER_DAY:
                raise InvalidInput(
                    f"invalid range {minutes_to_time_str(start)}-{minutes_to_time_str(end)}"
                )
        for (_, prev_end), (next_start, _) in zip(ranges, ranges[1:]):
            if next_start < prev_end:
                raise InvalidInput("ranges of a day cannot overlap")
        if self.is_open and not ranges:
            raise InvalidInput("an open day needs at least one range")
        object.__setattr__(self, "ranges", ranges)

    @classmethod
    def closed(cls) -> "DaySchedule":
        return cls(is_open=False, ranges=())

    @classmethod
    def from_time_strings(cls, ranges, is_open: bool = True) -> "DaySchedule":
        """Build from [["HH:MM", "HH:MM"], ...]."""
        parsed = []
        for item in ranges or []:
            if not isinstance(item, (list, tuple)) or len(item) != 2:
                raise InvalidInput(f"range must be a [start, end] pair, got {item!r}")
            parsed.append((time_str_to_minutes(item[0]), time_str_to_minutes(item[1])))
        return cls(is_open=is_open, ranges=tuple(parsed))

    def contains(self, start_minute: int, end_minute: int) -> bool:
        """True if [start, end) fits entirely inside one open range."""
        if not self.is_open:
            return False
        return any(s <= start_minute and end_minute <= e for s, e in self.ranges)

    def time_ranges(self) -> list[list[str]]:
        return [[minutes_to_time_str(s), minutes_to_time_str(e)] for s, e in self.ranges]


@dataclass(frozen=True)
class WeeklySchedule:
    """Seven DaySchedule values indexed by date.weekday() (0 = Monday)."""
    days: tuple[DaySchedule, ...] = tuple(DaySchedule.closed() for _ in range(7))

    def __post_init__(self):
        if len(self.days) != 7:
            raise InvalidInput(f"weekly schedule needs 7 days, got {len(self.days)}")

    def for_weekday(self, weekday: int) -> DaySchedule:
        return self.days[weekday]

    def for_date(self, day: date) -> DaySchedule:
        return self.days[day.weekday()]

    @property
    def has_open_day(self) -> bool:
        return any(d.is_open for d in self.days)

    def with_day(self, weekday: int, day: DaySchedule) -> "WeeklySchedule":
        if not 0 <= weekday <= 6:
            raise InvalidInput(f"weekday must be between 0 and 6, got {weekday}")
        days = list(self.days)
        days[weekday] = day
        return replace(self, days=tuple(days))

    # ── Serialization ────────────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: dict | None) -> "WeeklySchedule":
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise InvalidInput("weekly schedule must be an object")
        unknown = sorted(str(key) for key in data if key not in _DAY_KEYS)
        if unknown:
            raise InvalidInput(
                f"unknown day key(s) {', '.join(unknown)}; expected mon..sun or 0..6"
            )

        days = []
        for weekday, day_name in enumerate(DAY_NAMES):
            if day_name in data:
                raw = data[day_name]
            else:
                raw = data.get(str(weekday))
            days.append(_parse_day(raw))
        return cls(days=tuple(days))

    @classmethod
    def from_json(cls, raw: str | None) -> "WeeklySchedule":
        if not raw:
            return cls()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidInput(f"weekly schedule is not valid JSON: {e}") from e
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        return {
            day_name: {"is_open": day.is_open, "ranges": day.time_ranges()}
            for day_name, day in zip(DAY_NAMES, self.days)
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def _parse_day(raw) -> DaySchedule:
    if raw is None:
        return DaySchedule.closed()

    if isinstance(raw, list):
        if not raw:
            return DaySchedule.closed()
        return DaySchedule.from_time_strings(raw, is_open=True)

    if isinstance(raw, dict):
        if "ranges" in raw or "is_open" in raw:
            return DaySchedule.from_time_strings(
                raw.get("ranges") or [],
                is_open=bool(raw.get("is_open", True)),
            )
        start = raw.get("start")
        end = raw.get("end")
        if start and end:
            return DaySchedule.from_time_strings([[start, end]], is_open=True)
        return DaySchedule.closed()

    raise InvalidInput(f"unsupported day value {raw!r}")
