import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List

from app.agents.data_curator import TimetableContext
from app.agents.time_slots import EVENT_BUFFER_MINUTES, day_name_of, session_span, time_to_minutes
from app.agents.topic_matching import is_valid_topic_fuzzy, topic_key

logger = logging.getLogger(__name__)

HALLUCINATION_TYPES = {"event_as_session", "unknown_topic", "event_type"}


class PolicyComplianceAgent:
    """Strips generated sessions that break the student's constraints.

    Rules, applied in order:
    1. no homework session on a homework's due date;
    2. every study session names a real topic (fuzzy) or, for homework, a real
       homework title; events are never sessions; no session overlaps an event
       or the buffer before it;
    3. sessions sit inside the enabled time window of their day.
    """

    def enforce(self, schedule: Dict[str, Any], ctx: TimetableContext) -> Dict[str, Any]:
        violations: List[Dict[str, Any]] = []

        self._drop_unusable_days(schedule, ctx, violations)
        self._drop_homework_on_due_dates(schedule, ctx, violations)
        self._drop_invalid_sessions(schedule, ctx, violations)
        self._drop_outside_window(schedule, ctx, violations)

        counts = {
            "hallucinations": sum(1 for v in violations if v["constraint_type"] in HALLUCINATION_TYPES),
            "overlaps": sum(1 for v in violations if v["constraint_type"] == "event_overlap"),
            "time_window": sum(1 for v in violations if v["constraint_type"] == "time_window"),
            "homework_due_date": sum(1 for v in violations if v["constraint_type"] == "homework_due_date"),
        }
        logger.info(
            "Hallucinations removed: %s, overlapping sessions removed: %s, time window removals: %s",
            counts["hallucinations"], counts["overlaps"], counts["time_window"],
        )
        return {"violations": violations, "counts": counts}

    def _drop_unusable_days(self, schedule, ctx, violations):
        start = date.fromisoformat(ctx.request.start_date)
        end = date.fromisoformat(ctx.request.end_date)
        for date_str in list(schedule):
            sessions = schedule[date_str]
            try:
                day = date.fromisoformat(date_str)
            except ValueError:
                day = None
            if not isinstance(sessions, list) or day is None or not start <= day <= end:
                logger.warning("Dropping unusable schedule day: %s", date_str)
                violations.append({"constraint_type": "time_window", "details": {"date": date_str}})
                del schedule[date_str]
                continue
            schedule[date_str] = [s for s in sessions if isinstance(s, dict)]

    def _drop_homework_on_due_dates(self, schedule, ctx, violations):
        due_dates = {hw.due_date for hw in ctx.request.homeworks}
        for date_str in due_dates & set(schedule):
            kept = []
            for session in schedule[date_str]:
                if session.get("type") == "homework":
                    violations.append({
                        "constraint_type": "homework_due_date",
                        "details": {"date": date_str, "topic": session.get("topic")},
                    })
                else:
                    kept.append(session)
            schedule[date_str] = kept

    def _drop_invalid_sessions(self, schedule, ctx, violations):
        valid_topics = {topic_key(t.name) for t in ctx.request.topics}
        homework_titles = {topic_key(hw.title) for hw in ctx.request.homeworks}
        event_titles = {topic_key(e.title) for e in ctx.events}

        for date_str, sessions in schedule.items():
            kept = []
            for session in sessions:
                reason = self._violation(date_str, session, ctx, valid_topics, homework_titles, event_titles)
                if reason is None:
                    kept.append(session)
                    continue
                logger.info("REJECTED (%s): %s %s %s", reason, date_str, session.get("time"), session.get("topic"))
                violations.append({
                    "constraint_type": reason,
                    "details": {"date": date_str, "time": session.get("time"), "topic": session.get("topic")},
                })
            schedule[date_str] = kept

    def _violation(self, date_str, session, ctx, valid_topics, homework_titles, event_titles):
        span = session_span(session)
        if span is None:
            return None

        session_type = session.get("type")
        if session_type != "break":
            topic = topic_key(str(session.get("topic") or ""))
            if topic in event_titles:
                return "event_as_session"
            is_topic = is_valid_topic_fuzzy(topic, valid_topics)
            is_homework = session_type == "homework" and topic in homework_titles
            if not is_topic and not is_homework:
                return "unknown_topic"

        if session_type == "event":
            return "event_type"

        if self.overlaps_event(date_str, span[0], span[1], ctx):
            return "event_overlap"
        return None

    @staticmethod
    def overlaps_event(date_str: str, start_minute: int, duration: int, ctx: TimetableContext) -> bool:
        events = ctx.events_by_date.get(date_str)
        if not events:
            return False
        session_start = datetime.combine(date.fromisoformat(date_str), datetime.min.time()) + timedelta(
            minutes=start_minute
        )
        session_end = session_start + timedelta(minutes=duration)
        buffer = timedelta(minutes=EVENT_BUFFER_MINUTES)
        return any(session_start < e.end and session_end > e.start - buffer for e in events)

    def _drop_outside_window(self, schedule, ctx, violations):
        for date_str, sessions in schedule.items():
            window = ctx.day_windows.get(day_name_of(date.fromisoformat(date_str)))
            if window is None:
                if sessions:
                    logger.info("Removing %s sessions on disabled day: %s", len(sessions), date_str)
                for session in sessions:
                    violations.append({
                        "constraint_type": "time_window",
                        "details": {"date": date_str, "time": session.get("time"), "reason": "disabled day"},
                    })
                schedule[date_str] = []
                continue

            window_start = time_to_minutes(window.start_time)
            window_end = time_to_minutes(window.end_time)
            kept = []
            for session in sessions:
                span = session_span(session)
                if span is not None and (span[0] < window_start or span[0] + span[1] > window_end):
                    violations.append({
                        "constraint_type": "time_window",
                        "details": {"date": date_str, "time": session.get("time"), "duration": span[1]},
                    })
                    continue
                kept.append(session)
            schedule[date_str] = kept
