from app.agents.history_agent import LearningHistory
from app.agents.negotiator import NegotiatorAgent, sort_sessions
from fakes import both_days_preferences


def _study(time, topic, duration=45, kind="practice"):
    return {"time": time, "duration": duration, "topic": topic, "type": kind}


def test_empty_schedule_is_filled_struggles_first(make_context):
    ctx = make_context(preferences=both_days_preferences(), events=[])
    schedule = {}
    history = LearningHistory(struggled_keys={"photosynthesis"})

    report = NegotiatorAgent().negotiate(schedule, ctx, history, removed_count=0)

    assert report["missing_topics"] == ["Cell Structure", "Photosynthesis"]
    assert report["sessions_added"] == 2
    assert schedule["2026-11-02"] == [
        {
            "time": "16:00",
            "duration": 45,
            "subject": "Biology",
            "topic": "Photosynthesis",
            "type": "practice",
            "notes": "Gap-fill session - Practice and review",
            "mode": "balanced",
        },
    ]
    assert schedule["2026-11-03"][0]["topic"] == "Cell Structure"
    assert report["low_density_days"] == [
        {"date": "2026-11-02", "count": 1},
        {"date": "2026-11-03", "count": 1},
    ]


def test_gap_fill_works_around_existing_sessions(make_context):
    ctx = make_context(preferences=both_days_preferences(), events=[])
    schedule = {"2026-11-02": [_study("16:00", "Cell Structure", duration=60)]}

    added = NegotiatorAgent().fill_gaps(schedule, ctx, ctx.request.topics)

    assert added == 2
    assert [(s["time"], s.get("topic")) for s in schedule["2026-11-02"]] == [
        ("16:00", "Cell Structure"),
        ("17:00", "Cell Structure"),
    ]
    assert schedule["2026-11-03"][0]["topic"] == "Photosynthesis"


def test_only_gaps_before_an_existing_session_get_a_break(make_context):
    ctx = make_context(preferences=both_days_preferences(), events=[])
    schedule = {"2026-11-02": [_study("18:00", "Cell Structure", duration=60)]}

    added = NegotiatorAgent().fill_gaps(schedule, ctx, ctx.request.topics)

    assert added == 2
    assert [(s["time"], s["duration"], s["type"]) for s in schedule["2026-11-02"]] == [
        ("16:00", 45, "practice"),
        ("16:45", 10, "break"),
        ("18:00", 60, "practice"),
        ("19:00", 45, "practice"),
    ]
    assert "2026-11-03" not in schedule


def test_gap_fill_skips_days_without_free_time(make_context):
    ctx = make_context()
    schedule = {}

    added = NegotiatorAgent().fill_gaps(schedule, ctx, ctx.request.topics)

    # Monday has two free slots around the event, Tuesday is disabled
    assert added == 2
    assert set(schedule) == {"2026-11-02"}
    assert [s["time"] for s in schedule["2026-11-02"] if s["type"] != "break"] == ["16:00", "18:00"]


def test_well_covered_schedule_is_only_sorted(make_context):
    ctx = make_context(preferences=both_days_preferences(), events=[])
    schedule = {
        "2026-11-02": [
            _study("18:00", "Photosynthesis", kind="exam_questions"),
            _study("16:00", "Cell Structure"),
            _study("17:00", "Photosynthesis"),
            _study("19:00", "Cell Structure", kind="exam_questions"),
        ]
    }

    report = NegotiatorAgent().negotiate(schedule, ctx, LearningHistory(), removed_count=0)

    assert report == {"missing_topics": [], "sessions_added": 0, "low_density_days": []}
    assert [s["time"] for s in schedule["2026-11-02"]] == ["16:00", "17:00", "18:00", "19:00"]


def test_many_removals_trigger_gap_fill_even_without_missing_topics(make_context):
    ctx = make_context(preferences=both_days_preferences(), events=[])
    schedule = {"2026-11-02": [_study("16:00", "Cell Structure"), _study("17:00", "Photosynthesis")]}

    report = NegotiatorAgent().negotiate(schedule, ctx, LearningHistory(), removed_count=6)

    assert report["missing_topics"] == []
    assert report["sessions_added"] == 2


def test_sort_sessions_tolerates_bad_times():
    schedule = {"2026-11-02": [{"time": "17:00"}, {"time": "later"}, {}, {"time": "09:30"}]}
    sort_sessions(schedule)
    assert [s.get("time") for s in schedule["2026-11-02"]] == ["later", None, "09:30", "17:00"]
