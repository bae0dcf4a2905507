from datetime import time
from typing import Iterable, Union

TimeLike = Union[time, str]


def _to_minutes(value: TimeLike) -> int:
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    hours, minutes = str(value).split(":")[:2]
    return int(hours) * 60 + int(minutes)


def interval_minutes(time_in: TimeLike, time_out: TimeLike) -> int:
    return _to_minutes(time_out) - _to_minutes(time_in)


def total_minutes(intervals: Iterable) -> int:
    """Accepts (time_in, time_out) pairs or objects with time_in/time_out attributes."""
    total = 0
    for iv in intervals:
        if isinstance(iv, (tuple, list)):
            total += interval_minutes(iv[0], iv[1])
        elif isinstance(iv, dict):
            total += interval_minutes(iv["time_in"], iv["time_out"])
        else:
            total += interval_minutes(iv.time_in, iv.time_out)
    return total


def format_hours(minutes: int) -> str:
    return f"{minutes // 60}h {minutes % 60}m"


def format_total_hours(intervals: Iterable) -> str:
    return format_hours(total_minutes(intervals))


def format_clock(value: TimeLike) -> str:
    if isinstance(value, time):
        return value.strftime("%H:%M")
    return str(value)[:5]
