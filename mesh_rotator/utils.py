"""Utility functions for label parsing, age calculation and worker pacing."""

import logging
import math
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "t", "T", "TRUE", "true", "True")
_FALSE_VALUES = ("0", "f", "F", "FALSE", "false", "False")


def parse_bool(value: Optional[str]) -> bool:
    """
    Parse a label value as a boolean.

    Examples:
        "true" -> True
        "T" -> True
        "0" -> False

    Raises:
        ValueError: if the value is missing or not a recognised boolean
    """
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean value: {value!r}")


def label_is_true(labels: Optional[dict], key: str) -> bool:
    """Check whether a label parses as true. Bad or missing values count as false."""
    try:
        return parse_bool((labels or {}).get(key))
    except ValueError:
        return False


def round_to_minute(delta: timedelta) -> timedelta:
    """
    Round a duration to the nearest whole minute.

    Halfway values round away from zero, so 90s -> 2m and -90s -> -2m.
    """
    minutes = delta.total_seconds() / 60
    rounded = math.floor(abs(minutes) + 0.5)
    return timedelta(minutes=rounded if minutes >= 0 else -rounded)


def object_age(creation_timestamp: Optional[datetime], now: datetime) -> timedelta:
    """
    Age of an object rounded to the nearest minute.

    Objects without a creation timestamp are treated as brand new.
    Naive timestamps are assumed to be UTC.
    """
    if creation_timestamp is None:
        return timedelta(0)
    if creation_timestamp.tzinfo is None:
        creation_timestamp = creation_timestamp.replace(tzinfo=timezone.utc)
    return round_to_minute(now - creation_timestamp)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def run_until(func: Callable[[], None], period: float, stop_event: threading.Event) -> None:
    """
    Call func repeatedly, waiting period seconds between calls, until stop_event is set.

    Exceptions raised by func are logged and func is called again on the next period.
    """
    name = getattr(func, "__name__", repr(func))
    while not stop_event.is_set():
        try:
            func()
        except Exception:
            logger.exception(f"Unhandled error in {name}")
        if stop_event.wait(period):
            break
