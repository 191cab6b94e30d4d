from app.agents.history_agent import LearningHistory
from app.agents.prompt_builder import build_prompt, homework_section, mode_section, priority_section
from fakes import BIOLOGY_ID, both_days_preferences


def test_prompt_lists_free_slots_and_blocked_events(make_context):
    prompt = build_prompt(make_context(), LearningHistory())

    assert "2026-11-02 (monday):" in prompt
    assert "BLOCKED: 17:30 - 18:00 (Football)" in prompt
    assert "FREE: 16:00 - 17:15 (75 mins available)" in prompt
    assert "FREE: 18:00 - 20:00 (120 mins available)" in prompt
    assert "(tuesday)" not in prompt
    assert '"Football" on 2026-11-02: 17:30 - 18:00' in prompt
    assert "Sessions must END by 17:15" in prompt


def test_prompt_reports_adaptive_durations(make_context):
    prompt = build_prompt(make_context(), LearningHistory())

    assert "ADAPTIVE FITTING ACTIVE" in prompt
    assert "- Adjusted session duration: 40 mins" in prompt
    assert "TIMETABLE MODE: BALANCED - Sessions: 40 mins, Breaks: 9 mins" in prompt
    assert '"duration": 40' in prompt
    assert "TIMETABLE PERIOD: 2026-11-02 to 2026-11-03" in prompt


def test_prompt_without_reduction_or_events(make_context):
    prompt = build_prompt(make_context(preferences=both_days_preferences(), events=[]), LearningHistory())

    assert "ADAPTIVE FITTING ACTIVE" not in prompt
    assert "BLOCKED EVENT TIMES" not in prompt
    assert "(No events)" in prompt
    assert "2026-11-03 (tuesday):" in prompt


def test_topics_carry_their_test_dates(make_context):
    ctx = make_context(testDates=[{"subject_id": BIOLOGY_ID, "test_date": "2026-11-05", "test_type": "mock"}])
    prompt = build_prompt(ctx, LearningHistory())

    assert "Cell Structure (Biology - TEST DATE: 2026-11-05)" in prompt
    assert "UPCOMING TESTS: Biology mock on 2026-11-05" in prompt
    assert "Biology (AQA) - MODE: Short-Term Exam Prep" in prompt


def test_history_sections(make_context):
    history = LearningHistory(
        peak_hours={"bestTimeWindow": "evening", "worstTimeWindow": "morning", "recommendation": "Go late"},
        school_hours={"school_start_time": "08:30", "school_end_time": "15:30", "study_during_lunch": True,
                      "lunch_start": "12:30", "lunch_end": "13:15"},
        struggle_topics=[{"topic": "Cell Structure", "subject": "Biology", "severity": 6.5, "reason": "Avg focus: 45%"}],
        boosted_topics=[{"topic": "Cell Structure", "subject": "Biology"}],
    )
    prompt = build_prompt(make_context(), history)

    assert "BEST PERFORMANCE: EVENING" in prompt
    assert "NEVER schedule study between 08:30 and 15:30 on weekdays." in prompt
    assert "LUNCH TIME ENABLED: 12:30 - 13:15" in prompt
    assert "BEFORE SCHOOL DISABLED" in prompt
    assert '1. "Cell Structure" (Biology)' in prompt
    assert "Severity score: 6.5/10" in prompt
    assert "  - Cell Structure (Biology)" in prompt


def test_history_sections_absent_without_history(make_context):
    prompt = build_prompt(make_context(), LearningHistory())

    assert "PEAK STUDY HOURS" not in prompt
    assert "SCHOOL HOURS BLOCKING" not in prompt
    assert "HISTORICAL STRUGGLE ANALYSIS" not in prompt


def test_priorities_are_ranked_highest_first(make_context):
    ctx = make_context(topicAnalysis={"priorities": [
        {"topic_name": "Photosynthesis", "priority_score": 5, "reasoning": "Mostly fine"},
        {"topic_name": "Cell Structure", "priority_score": 9, "reasoning": "Weak on organelles"},
    ]})
    section = priority_section(ctx)

    assert section.index("- Cell Structure: Priority 9/10") < section.index("- Photosynthesis: Priority 5/10")
    assert priority_section(make_context()) == ""


def test_homework_and_user_notes(make_context):
    ctx = make_context(
        homeworks=[{"title": "Enzyme worksheet", "subject": "Biology", "due_date": "2026-11-03", "duration": 30}],
        aiNotes="No sessions after 19:00",
    )
    prompt = build_prompt(ctx, LearningHistory())

    assert '- "Enzyme worksheet" (Biology) - DUE: 2026-11-03, DURATION: 30 minutes' in prompt
    assert "No sessions after 19:00" in prompt
    assert homework_section(make_context()) == "No homework assignments"


def test_mode_section_follows_timetable_mode(make_context):
    assert mode_section(make_context(timetableMode="short-term-exam")).startswith(
        "TIMETABLE MODE: SHORT-TERM EXAM PREP"
    )
    assert "Homework first" in mode_section(make_context(timetableMode="no-exam"))
