import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

import pandas as pd

from app.agents.time_slots import js_round
from app.agents.topic_matching import is_valid_topic_fuzzy, topic_key
from app.schemas import GenerateTimetableRequest

logger = logging.getLogger(__name__)

LOW_FOCUS_THRESHOLD = 60
INCOMPLETE_RATE_THRESHOLD = 0.3
HIGH_DIFFICULTY_RATING = 4
STRUGGLE_SEVERITY_THRESHOLD = 2
LOW_PROGRESS_PERCENTAGE = 30
MAX_REPORTED_STRUGGLES = 10


@dataclass
class LearningHistory:
    peak_hours: Optional[Dict[str, Any]] = None
    school_hours: Optional[Dict[str, Any]] = None
    struggle_topics: List[Dict[str, Any]] = field(default_factory=list)
    struggled_keys: Set[str] = field(default_factory=set)
    boosted_topics: List[Dict[str, str]] = field(default_factory=list)

    def is_struggle(self, name: str) -> bool:
        return topic_key(name) in self.struggled_keys


def _rows(response) -> List[Dict[str, Any]]:
    if response is None or not response.data:
        return []
    return response.data if isinstance(response.data, list) else [response.data]


def _as_number(value) -> float:
    """Numeric value of a loosely typed JSON field, NaN when it is not a number or numeric string."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return float("nan")
    return float(pd.to_numeric(value, errors="coerce"))


def _running_average(values: pd.Series) -> float:
    # reflections without a focus level still count towards n
    avg = 0.0
    for n, value in enumerate(values, start=1):
        if not pd.isna(value):
            avg = (avg * (n - 1) + value) / n
    return avg


def _reflection_frame(reflections: List[Dict[str, Any]]) -> pd.DataFrame:
    records = []
    for reflection in reflections:
        if not isinstance(reflection, dict):
            continue
        data = reflection.get("reflection_data")
        if not isinstance(data, dict):
            data = {}
        difficulty_notes = 0
        if _as_number(data.get("difficulty")) >= HIGH_DIFFICULTY_RATING:
            difficulty_notes += 1
        aspects = data.get("challengingAspects")
        if isinstance(aspects, list):
            difficulty_notes += sum(1 for a in aspects if isinstance(a, dict) and a.get("content"))
        topic = str(reflection.get("topic") or "")
        records.append({
            "key": topic_key(topic),
            "topic": topic,
            "subject": reflection.get("subject", ""),
            "focus": _as_number(data.get("focusLevel")),
            "incomplete": data.get("completed") in ("partially", "no"),
            "difficulties": difficulty_notes,
        })
    return pd.DataFrame.from_records(
        records, columns=["key", "topic", "subject", "focus", "incomplete", "difficulties"]
    )


def analyze_struggles(reflections: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Score each reflected-on topic and keep the ones the student struggles with.

    Low average focus, a high share of unfinished sessions and repeated
    difficulty notes each add to a severity score; topics scoring above 2 are
    returned, most severe first. The focus average is folded in reflection
    order over every reflection of the topic.
    """
    frame = _reflection_frame(reflections or [])
    if frame.empty:
        return []

    grouped = frame.groupby("key", sort=False).agg(
        topic=("topic", "first"),
        subject=("subject", "first"),
        avg_focus=("focus", _running_average),
        incomplete=("incomplete", "sum"),
        total=("topic", "size"),
        difficulties=("difficulties", "sum"),
    )

    struggles = []
    for key, row in grouped.iterrows():
        severity = 0.0
        reasons = []

        if 0 < row["avg_focus"] < LOW_FOCUS_THRESHOLD:
            severity += (LOW_FOCUS_THRESHOLD - row["avg_focus"]) / 10
            reasons.append(f"Avg focus: {js_round(row['avg_focus'])}%")

        incomplete_rate = row["incomplete"] / row["total"]
        if incomplete_rate > INCOMPLETE_RATE_THRESHOLD:
            severity += incomplete_rate * 5
            reasons.append(f"{js_round(incomplete_rate * 100)}% incomplete")

        if row["difficulties"] >= 2:
            severity += int(row["difficulties"])
            reasons.append(f"{int(row['difficulties'])} difficulty mentions")

        if severity > STRUGGLE_SEVERITY_THRESHOLD:
            struggles.append({
                "key": key,
                "topic": row["topic"],
                "subject": row["subject"],
                "severity": float(severity),
                "reason": ", ".join(reasons),
            })

    struggles.sort(key=lambda s: s["severity"], reverse=True)
    return struggles


class HistoryAgent:
    """Reads a student's past study data to personalise the prompt.

    Every read is best effort: a missing table row or a failed query leaves
    the matching part of the history empty.
    """

    def __init__(self, supabase):
        self.supabase = supabase

    def collect(self, user_id: str, request: GenerateTimetableRequest) -> LearningHistory:
        history = LearningHistory(
            peak_hours=self.fetch_peak_hours(user_id),
            school_hours=self.fetch_school_hours(user_id),
        )

        try:
            reflections = _rows(
                self.supabase.table("topic_reflections")
                .select("subject, topic, reflection_data")
                .eq("user_id", user_id)
                .execute()
            )
            progress = _rows(self.supabase.table("topic_progress").select("*").eq("user_id", user_id).execute())
        except Exception as e:
            logger.info("No historical reflections found, proceeding without struggle analysis: %s", e)
            reflections, progress = [], []

        if reflections:
            logger.info("Found %s historical reflections", len(reflections))
        try:
            history.struggle_topics = analyze_struggles(reflections)
            history.struggled_keys.update(s["key"] for s in history.struggle_topics)
            history.struggled_keys.update(self.low_progress_keys(request, progress))
        except Exception as e:
            logger.error("Struggle analysis failed, proceeding without it: %s", e)
            history.struggle_topics, history.struggled_keys = [], set()
        if history.struggle_topics:
            logger.info("Identified %s struggle topics from history", len(history.struggle_topics))

        history.boosted_topics = self.match_current_topics(request, history.struggled_keys)
        logger.info("%s current topics match historical struggles", len(history.boosted_topics))
        return history

    @staticmethod
    def low_progress_keys(request: GenerateTimetableRequest, progress: List[Dict[str, Any]]) -> Set[str]:
        """Keys of the first current topic of every subject with struggling or low progress."""
        keys = set()
        for entry in progress:
            if not isinstance(entry, dict):
                continue
            low_progress = _as_number(entry.get("progress_percentage")) < LOW_PROGRESS_PERCENTAGE
            if entry.get("mastery_level") == "struggling" or low_progress:
                match = next((t for t in request.topics if t.subject_id == entry.get("subject_id")), None)
                if match:
                    keys.add(topic_key(match.name))
        return keys

    def fetch_peak_hours(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = (
                self.supabase.table("study_insights")
                .select("insights_data")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .limit(1)
                .maybe_single()
                .execute()
            )
        except Exception as e:
            logger.info("No existing insights found, proceeding without peak hours data: %s", e)
            return None
        rows = _rows(response)
        if not rows:
            return None
        return (rows[0].get("insights_data") or {}).get("peakStudyHours")

    def fetch_school_hours(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = (
                self.supabase.table("study_preferences")
                .select(
                    "school_start_time, school_end_time, study_before_school, study_during_lunch, "
                    "study_during_free_periods, before_school_start, before_school_end, lunch_start, lunch_end"
                )
                .eq("user_id", user_id)
                .single()
                .execute()
            )
        except Exception as e:
            logger.info("No school schedule found: %s", e)
            return None
        rows = _rows(response)
        if not rows or not (rows[0].get("school_start_time") and rows[0].get("school_end_time")):
            return None
        return rows[0]

    @staticmethod
    def match_current_topics(request: GenerateTimetableRequest, struggled_keys: Set[str]) -> List[Dict[str, str]]:
        subject_names = {s.id: s.name for s in request.subjects}
        boosted = []
        for topic in request.topics:
            key = topic_key(topic.name)
            is_struggle = key in struggled_keys or any(
                is_valid_topic_fuzzy(key, [struggled]) or is_valid_topic_fuzzy(struggled, [key])
                for struggled in struggled_keys
            )
            if is_struggle:
                boosted.append({"topic": topic.name, "subject": subject_names.get(topic.subject_id, "Unknown")})
        return boosted
