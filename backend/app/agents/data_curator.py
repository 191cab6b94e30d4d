import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List

from fastapi import HTTPException

from app.agents.time_slots import (
    AdaptiveConfig,
    DayEvent,
    DayFreeSlots,
    DayWindow,
    calculate_adaptive_config,
    calculate_coverage_durations,
    calculate_free_slots,
    day_name_of,
)
from app.schemas import Event, GenerateTimetableRequest, Homework

logger = logging.getLogger(__name__)

DEFAULT_HOMEWORK_MINUTES = 60
SESSIONS_PER_TOPIC = 2

_END_OF_DAY = time(23, 59, 59, 999000)


@dataclass
class TimetableContext:
    """Everything derived from the request before the model is asked anything."""

    request: GenerateTimetableRequest
    events: List[Event]
    day_windows: Dict[str, DayWindow]
    events_by_date: Dict[str, List[DayEvent]]
    day_free_slots: Dict[str, DayFreeSlots]
    total_available_minutes: int
    total_required_minutes: int
    adaptive: AdaptiveConfig
    session_duration: int
    break_duration: int
    relevant_homework: List[Homework] = field(default_factory=list)

    @property
    def total_days(self) -> int:
        return self.request.range_days + 1

    @property
    def mode(self) -> str:
        return self.request.timetable_mode or "balanced"


def parse_event_time(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; aware values are normalised to naive UTC."""
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid event time: {value}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def dedupe_events(events: List[Event]) -> List[Event]:
    unique: Dict[tuple, Event] = {}
    for event in events:
        unique[(event.title, event.start_time, event.end_time, event.id)] = event
    return list(unique.values())


def split_events_by_date(events: List[Event]) -> Dict[str, List[DayEvent]]:
    """Spread each event over every calendar day it touches, clipped to that day."""
    by_date: Dict[str, List[DayEvent]] = {}
    for event in events:
        start = parse_event_time(event.start_time)
        end = parse_event_time(event.end_time)

        current = start.date()
        while current <= end.date():
            day_start = datetime.combine(current, time.min)
            day_end = datetime.combine(current, _END_OF_DAY)
            by_date.setdefault(current.isoformat(), []).append(
                DayEvent(start=max(start, day_start), end=min(end, day_end), title=event.title)
            )
            current += timedelta(days=1)
    return by_date


def select_relevant_homework(homeworks: List[Homework], start_date: str, end_date: str) -> List[Homework]:
    """Homework due inside the range that still leaves a day to work on it."""
    start = date.fromisoformat(start_date)
    end = date.fromisoformat(end_date)
    relevant = []
    for hw in homeworks:
        due = date.fromisoformat(hw.due_date)
        if due < start or due > end:
            continue
        if due - timedelta(days=1) >= start:
            relevant.append(hw)
    return relevant


class DataCuratorAgent:
    def curate(self, request: GenerateTimetableRequest) -> TimetableContext:
        prefs = request.preferences
        events = dedupe_events(request.events)

        day_windows = {
            slot.day.lower(): DayWindow(start_time=slot.start_time, end_time=slot.end_time)
            for slot in prefs.day_time_slots
            if slot.enabled
        }
        events_by_date = split_events_by_date(events)

        day_free_slots: Dict[str, DayFreeSlots] = {}
        total_available = 0
        current = date.fromisoformat(request.start_date)
        last = date.fromisoformat(request.end_date)
        while current <= last:
            date_str = current.isoformat()
            slots = calculate_free_slots(
                date_str,
                day_windows.get(day_name_of(current)),
                events_by_date.get(date_str, []),
                prefs.break_duration,
            )
            day_free_slots[date_str] = slots
            total_available += slots.total_free_minutes
            current += timedelta(days=1)

        logger.info("Total available study time: %s minutes (%.1f hours)", total_available, total_available / 60)

        topic_minutes = len(request.topics) * prefs.session_duration * SESSIONS_PER_TOPIC
        homework_minutes = sum(hw.duration or DEFAULT_HOMEWORK_MINUTES for hw in request.homeworks)
        break_minutes = len(request.topics) * SESSIONS_PER_TOPIC * prefs.break_duration
        total_required = topic_minutes + homework_minutes + break_minutes
        logger.info(
            "Estimated required time: %s mins (topics %s, homework %s, breaks %s)",
            total_required, topic_minutes, homework_minutes, break_minutes,
        )

        adaptive = calculate_adaptive_config(
            total_required,
            total_available,
            prefs.session_duration,
            prefs.break_duration,
            prefs.duration_mode,
        )
        coverage = calculate_coverage_durations(
            len(request.topics), total_available, adaptive.session_duration, adaptive.break_duration
        )

        return TimetableContext(
            request=request,
            events=events,
            day_windows=day_windows,
            events_by_date=events_by_date,
            day_free_slots=day_free_slots,
            total_available_minutes=total_available,
            total_required_minutes=total_required,
            adaptive=adaptive,
            session_duration=coverage["session_duration"],
            break_duration=coverage["break_duration"],
            relevant_homework=select_relevant_homework(request.homeworks, request.start_date, request.end_date),
        )
