"""Clock arithmetic and free-slot calculation for a single study day."""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Sessions must end this many minutes before an event starts
EVENT_BUFFER_MINUTES = 15

# Shortest session the gap filler or adaptive fitting will produce
MIN_SESSION_DURATION = 25

DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


@dataclass
class DayWindow:
    start_time: str
    end_time: str


@dataclass
class DayEvent:
    start: datetime
    end: datetime
    title: str


@dataclass
class FreeSlot:
    free_from: str
    free_to: str
    duration_mins: int


@dataclass
class DayFreeSlots:
    date: str
    day_name: str
    free_slots: List[FreeSlot] = field(default_factory=list)
    total_free_minutes: int = 0


@dataclass
class AdaptiveConfig:
    session_duration: int
    break_duration: int
    reduction_factor: float
    is_reduced: bool


def js_round(value: float) -> int:
    # Half-up rounding, Python's round() is banker's rounding
    return int(math.floor(value + 0.5))


def time_to_minutes(value: str) -> int:
    hours, mins = value.split(":")[:2]
    return int(hours) * 60 + int(mins)


def minutes_to_time(mins: int) -> str:
    return f"{mins // 60:02d}:{mins % 60:02d}"


def session_span(session) -> Optional[Tuple[int, int]]:
    """(start minute, duration) of a generated session, None if either is missing or unreadable."""
    if not isinstance(session, dict) or not session.get("time") or not session.get("duration"):
        return None
    try:
        return time_to_minutes(str(session["time"])), int(session["duration"])
    except (TypeError, ValueError):
        return None


def day_name_of(value: date) -> str:
    return DAY_NAMES[value.weekday()]


def minute_of_day(value: datetime) -> int:
    return value.hour * 60 + value.minute


def calculate_free_slots(
    date_str: str,
    window: Optional[DayWindow],
    events_on_day: List[DayEvent],
    break_duration: int,
) -> DayFreeSlots:
    day_name = day_name_of(date.fromisoformat(date_str))
    if window is None:
        return DayFreeSlots(date=date_str, day_name=day_name)

    window_start = time_to_minutes(window.start_time)
    window_end = time_to_minutes(window.end_time)

    free = [(window_start, window_end)]
    for event in sorted(events_on_day, key=lambda e: e.start):
        blocked_start = max(window_start, minute_of_day(event.start) - EVENT_BUFFER_MINUTES)
        blocked_end = min(window_end, minute_of_day(event.end))

        remaining = []
        for start, end in free:
            if blocked_end <= start or blocked_start >= end:
                remaining.append((start, end))
                continue
            if start < blocked_start:
                remaining.append((start, blocked_start))
            if end > blocked_end:
                remaining.append((blocked_end, end))
        free = remaining

    min_slot_size = MIN_SESSION_DURATION + break_duration
    slots = [
        FreeSlot(free_from=minutes_to_time(start), free_to=minutes_to_time(end), duration_mins=end - start)
        for start, end in free
        if end - start >= min_slot_size
    ]
    return DayFreeSlots(
        date=date_str,
        day_name=day_name,
        free_slots=slots,
        total_free_minutes=sum(s.duration_mins for s in slots),
    )


def calculate_adaptive_config(
    total_required_minutes: int,
    total_available_minutes: int,
    base_session_duration: int,
    base_break_duration: int,
    duration_mode: str,
) -> AdaptiveConfig:
    """Shrink sessions and breaks when the requested content does not fit.

    Fixed duration mode never shrinks. The reduction factor is floored at 0.5,
    sessions never go below MIN_SESSION_DURATION and breaks never below 5 minutes.
    """
    if duration_mode == "fixed" or total_required_minutes <= total_available_minutes:
        return AdaptiveConfig(base_session_duration, base_break_duration, 1.0, False)

    factor = max(0.5, total_available_minutes / total_required_minutes)
    session = max(MIN_SESSION_DURATION, js_round(base_session_duration * factor))
    brk = max(5, js_round(base_break_duration * max(0.7, factor)))

    logger.info(
        "Adaptive fitting: %s mins needed, %s mins available, factor %.2f, sessions %s -> %s, breaks %s -> %s",
        total_required_minutes, total_available_minutes, factor,
        base_session_duration, session, base_break_duration, brk,
    )
    return AdaptiveConfig(session, brk, factor, True)


def calculate_coverage_durations(
    topic_count: int,
    total_available_minutes: int,
    session_duration: int,
    break_duration: int,
) -> Dict[str, int]:
    """Durations that let every topic get at least one session."""
    required = topic_count * session_duration + topic_count * break_duration
    if required > total_available_minutes > 0:
        factor = total_available_minutes / required
        adjusted_session = max(20, js_round(session_duration * factor))
        adjusted_break = max(5, js_round(break_duration * max(0.6, factor)))
        logger.info(
            "Coverage adjustment: %s topics need %smin, have %smin, sessions %s -> %s, breaks %s -> %s",
            topic_count, required, total_available_minutes,
            session_duration, adjusted_session, break_duration, adjusted_break,
        )
        return {"session_duration": adjusted_session, "break_duration": adjusted_break}
    return {"session_duration": session_duration, "break_duration": break_duration}
