from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^\d{1,2}:\d{2}$"

StudyMode = Literal["short-term-exam", "long-term-exam", "no-exam"]


class Subject(BaseModel):
    id: str = Field(pattern=UUID_PATTERN)
    name: str = Field(max_length=100)
    exam_board: str = Field(max_length=50)
    mode: StudyMode = "no-exam"


class Topic(BaseModel):
    name: str = Field(max_length=200)
    subject_id: str = Field(max_length=100)


class TestDate(BaseModel):
    subject_id: str = Field(max_length=100)
    test_date: str = Field(pattern=DATE_PATTERN)
    test_type: str = Field(max_length=50)


class DayTimeSlot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: str
    start_time: str = Field(alias="startTime", pattern=TIME_PATTERN)
    end_time: str = Field(alias="endTime", pattern=TIME_PATTERN)
    enabled: bool


class Preferences(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    daily_study_hours: float = Field(ge=0, le=12)
    day_time_slots: List[DayTimeSlot]
    session_duration: int = Field(ge=15, le=180)
    break_duration: int = Field(ge=5, le=60)
    duration_mode: Literal["fixed", "flexible"]
    ai_notes: Optional[str] = Field(default=None, alias="aiNotes")
    study_before_school: Optional[bool] = None
    study_during_lunch: Optional[bool] = None
    study_during_free_periods: Optional[bool] = None
    before_school_start: Optional[str] = None
    before_school_end: Optional[str] = None
    lunch_start: Optional[str] = None
    lunch_end: Optional[str] = None


class Homework(BaseModel):
    id: Optional[str] = Field(default=None, pattern=UUID_PATTERN)
    title: str
    subject: str
    due_date: str = Field(pattern=DATE_PATTERN)
    duration: Optional[int] = None
    description: Optional[str] = None


class TopicPriority(BaseModel):
    topic_name: str
    priority_score: float
    reasoning: str


class DifficultTopic(BaseModel):
    topic_name: str
    reason: str
    study_suggestion: str


class TopicAnalysis(BaseModel):
    priorities: Optional[List[TopicPriority]] = None
    difficult_topics: Optional[List[DifficultTopic]] = None


class Event(BaseModel):
    id: str = Field(pattern=UUID_PATTERN)
    title: str
    description: Optional[str] = None
    start_time: str
    end_time: str


class GenerateTimetableRequest(BaseModel):
    """Body of POST /timetable/generate, keyed the way the web client sends it."""

    model_config = ConfigDict(populate_by_name=True)

    subjects: List[Subject] = Field(max_length=20)
    topics: List[Topic] = Field(max_length=500)
    test_dates: List[TestDate] = Field(alias="testDates", max_length=50)
    preferences: Preferences
    homeworks: List[Homework] = Field(default_factory=list)
    topic_analysis: Optional[TopicAnalysis] = Field(default=None, alias="topicAnalysis")
    ai_notes: Optional[str] = Field(default=None, alias="aiNotes")
    events: List[Event] = Field(default_factory=list)
    start_date: str = Field(alias="startDate", pattern=DATE_PATTERN)
    end_date: str = Field(alias="endDate", pattern=DATE_PATTERN)
    timetable_mode: Optional[StudyMode] = Field(default=None, alias="timetableMode")
    timetable_id: Optional[str] = Field(default=None, alias="timetableId", pattern=UUID_PATTERN)
    name: Optional[str] = Field(default=None, max_length=100)

    @field_validator("homeworks", "events", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value

    @model_validator(mode="after")
    def _check_range(self):
        if date.fromisoformat(self.end_date) < date.fromisoformat(self.start_date):
            raise ValueError("endDate must not be before startDate")
        return self

    @property
    def range_days(self) -> int:
        return (date.fromisoformat(self.end_date) - date.fromisoformat(self.start_date)).days
