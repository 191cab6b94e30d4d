import logging
from typing import Any, Dict, List, Tuple

from app.agents.data_curator import TimetableContext
from app.agents.history_agent import LearningHistory
from app.agents.time_slots import minutes_to_time, session_span, time_to_minutes
from app.agents.topic_matching import is_valid_topic_fuzzy, topic_key
from app.schemas import Topic

logger = logging.getLogger(__name__)

TARGET_SESSIONS_PER_TOPIC = 2
GAP_FILL_REMOVAL_THRESHOLD = 5
NON_STUDY_TYPES = {"break", "lunch", "event"}


def _sort_key(session: Dict[str, Any]) -> int:
    try:
        return time_to_minutes(str(session.get("time") or "00:00"))
    except ValueError:
        return 0


def sort_sessions(schedule: Dict[str, List[Dict[str, Any]]]) -> None:
    for date_str in schedule:
        schedule[date_str].sort(key=_sort_key)


def _free_segments(slot_start: int, slot_end: int, occupied: List[Tuple[int, int]]):
    cursor = slot_start
    for start, end in sorted(occupied):
        if end <= cursor:
            continue
        if start >= slot_end:
            break
        if start > cursor:
            yield cursor, start
        cursor = max(cursor, end)
    if cursor < slot_end:
        yield cursor, slot_end


class NegotiatorAgent:
    """Repairs coverage after the policy pass has thrown sessions away."""

    def negotiate(
        self,
        schedule: Dict[str, List[Dict[str, Any]]],
        ctx: TimetableContext,
        history: LearningHistory,
        removed_count: int,
    ) -> Dict[str, Any]:
        missing = self.missing_topics(schedule, ctx.request.topics)
        logger.info("Missing topics check: %s topics not yet scheduled", len(missing))

        sessions_added = 0
        if removed_count > GAP_FILL_REMOVAL_THRESHOLD or missing:
            logger.info("%s sessions were removed, %s topics missing. Starting gap filling", removed_count, len(missing))
            # struggle topics first, stable for the rest
            ordered = sorted(ctx.request.topics, key=lambda t: 0 if history.is_struggle(t.name) else 1)
            sessions_added = self.fill_gaps(schedule, ctx, ordered)

        low_density = self.low_density_days(schedule, ctx)
        if low_density:
            logger.warning("Low density days: %s", ", ".join(f"{d['date']}: {d['count']}" for d in low_density))
        else:
            logger.info("Session density validation passed")

        sort_sessions(schedule)
        return {
            "missing_topics": [t.name for t in missing],
            "sessions_added": sessions_added,
            "low_density_days": low_density,
        }

    @staticmethod
    def missing_topics(schedule, topics: List[Topic]) -> List[Topic]:
        scheduled = {topic_key(str(s["topic"])) for sessions in schedule.values() for s in sessions if s.get("topic")}
        return [
            t for t in topics
            if topic_key(t.name) not in scheduled and not is_valid_topic_fuzzy(topic_key(t.name), scheduled)
        ]

    def fill_gaps(self, schedule, ctx: TimetableContext, topics: List[Topic]) -> int:
        """Place one practice session for an under-covered topic into each large enough gap.

        A gap is a stretch of a day's free slot not taken by an existing
        session and at least ``session + break`` minutes long. Topics with
        fewer than two sessions are used up in the given order.
        """
        session_len, break_len = ctx.session_duration, ctx.break_duration
        mode = ctx.mode
        subjects = {s.id: s.name for s in ctx.request.subjects}

        coverage: Dict[str, int] = {}
        for sessions in schedule.values():
            for s in sessions:
                if s.get("type") != "break" and s.get("topic"):
                    key = topic_key(str(s["topic"]))
                    coverage[key] = coverage.get(key, 0) + 1

        queue = [t for t in topics if coverage.get(topic_key(t.name), 0) < TARGET_SESSIONS_PER_TOPIC]
        if not queue:
            logger.info("All topics have adequate coverage")
            return 0
        logger.info("%s topics need more coverage", len(queue))

        added = 0
        for date_str, day in ctx.day_free_slots.items():
            if not day.free_slots or not queue:
                continue
            day_sessions = schedule.get(date_str, [])
            occupied = []
            for s in day_sessions:
                span = session_span(s)
                if span is not None:
                    occupied.append((span[0], span[0] + span[1]))

            for slot in day.free_slots:
                slot_start, slot_end = time_to_minutes(slot.free_from), time_to_minutes(slot.free_to)
                for gap_start, gap_end in list(_free_segments(slot_start, slot_end, occupied)):
                    gap = gap_end - gap_start
                    if gap < session_len + break_len or not queue:
                        continue
                    topic = queue.pop(0)
                    duration = min(session_len, gap - break_len)
                    day_sessions.append({
                        "time": minutes_to_time(gap_start),
                        "duration": duration,
                        "subject": subjects.get(topic.subject_id, "Unknown"),
                        "topic": topic.name,
                        "type": "practice",
                        "notes": "Gap-fill session - Practice and review",
                        "mode": mode,
                    })
                    # the gap running to the end of the slot gets no trailing break
                    if gap_end < slot_end and gap > session_len + 5:
                        day_sessions.append({
                            "time": minutes_to_time(gap_start + duration),
                            "duration": min(break_len, gap - duration),
                            "type": "break",
                            "notes": "Short break",
                            "mode": mode,
                        })
                    occupied.append((gap_start, gap_start + duration + break_len))
                    added += 1
                    logger.info("Added gap-fill session: %s %s - %s", date_str, minutes_to_time(gap_start), topic.name)

            if day_sessions:
                day_sessions.sort(key=_sort_key)
                schedule[date_str] = day_sessions

        logger.info("Gap filling complete: %s sessions added", added)
        return added

    @staticmethod
    def low_density_days(schedule, ctx: TimetableContext) -> List[Dict[str, Any]]:
        low = []
        for date_str, sessions in schedule.items():
            study = [s for s in sessions if s.get("type") not in NON_STUDY_TYPES]
            day = ctx.day_free_slots.get(date_str)
            expected = 3 if day and day.total_free_minutes > 120 else 1
            if 0 < len(study) < expected:
                low.append({"date": date_str, "count": len(study)})
        return low
