from datetime import datetime

from app.agents.time_slots import (
    DayEvent,
    DayWindow,
    calculate_adaptive_config,
    calculate_coverage_durations,
    calculate_free_slots,
    js_round,
    minutes_to_time,
    session_span,
    time_to_minutes,
)

MONDAY = "2026-11-02"
AFTER_SCHOOL = DayWindow(start_time="16:00", end_time="20:00")


def _event(start, end, title="Football"):
    return DayEvent(
        start=datetime.fromisoformat(f"{MONDAY}T{start}"),
        end=datetime.fromisoformat(f"{MONDAY}T{end}"),
        title=title,
    )


def test_clock_conversions():
    assert time_to_minutes("07:05") == 425
    assert time_to_minutes("16:30:00") == 990
    assert minutes_to_time(425) == "07:05"
    assert minutes_to_time(0) == "00:00"


def test_js_round_rounds_halves_up():
    assert js_round(2.5) == 3
    assert js_round(22.5) == 23
    assert js_round(39.886) == 40


def test_session_span_ignores_unreadable_sessions():
    assert session_span({"time": "16:00", "duration": 45}) == (960, 45)
    assert session_span({"time": "16:00"}) is None
    assert session_span({"time": "soon", "duration": 45}) is None
    assert session_span("16:00") is None


def test_free_slots_without_events_cover_whole_window():
    day = calculate_free_slots(MONDAY, AFTER_SCHOOL, [], 10)

    assert day.day_name == "monday"
    assert [(s.free_from, s.free_to, s.duration_mins) for s in day.free_slots] == [("16:00", "20:00", 240)]
    assert day.total_free_minutes == 240


def test_event_splits_window_and_keeps_buffer_before_it():
    day = calculate_free_slots(MONDAY, AFTER_SCHOOL, [_event("17:30", "18:00")], 10)

    assert [(s.free_from, s.free_to) for s in day.free_slots] == [("16:00", "17:15"), ("18:00", "20:00")]
    assert day.total_free_minutes == 75 + 120


def test_event_running_past_window_end_is_clipped():
    day = calculate_free_slots(MONDAY, AFTER_SCHOOL, [_event("19:50", "21:00")], 10)

    assert [(s.free_from, s.free_to) for s in day.free_slots] == [("16:00", "19:35")]


def test_slots_too_small_for_a_session_are_dropped():
    window = DayWindow(start_time="16:00", end_time="17:00")
    day = calculate_free_slots(MONDAY, window, [_event("16:40", "17:00")], 10)

    assert day.free_slots == []
    assert day.total_free_minutes == 0


def test_disabled_day_has_no_free_time():
    day = calculate_free_slots("2026-11-03", None, [], 10)

    assert day.day_name == "tuesday"
    assert day.free_slots == []
    assert day.total_free_minutes == 0


def test_adaptive_config_shrinks_flexible_sessions():
    config = calculate_adaptive_config(1000, 600, 60, 10, "flexible")

    assert config.is_reduced
    assert config.reduction_factor == 0.6
    assert config.session_duration == 36
    assert config.break_duration == 7


def test_adaptive_config_reduction_is_floored():
    config = calculate_adaptive_config(1000, 200, 60, 10, "flexible")

    assert config.reduction_factor == 0.5
    assert config.session_duration == 30
    assert config.break_duration == 7


def test_adaptive_config_never_goes_below_minimum_session():
    config = calculate_adaptive_config(1000, 100, 30, 5, "flexible")

    assert config.session_duration == 25
    assert config.break_duration == 5


def test_fixed_mode_and_enough_time_leave_durations_alone():
    assert not calculate_adaptive_config(1000, 200, 60, 10, "fixed").is_reduced
    config = calculate_adaptive_config(500, 600, 60, 10, "flexible")
    assert (config.session_duration, config.break_duration, config.is_reduced) == (60, 10, False)


def test_coverage_durations_fit_one_session_per_topic():
    assert calculate_coverage_durations(10, 300, 45, 15) == {"session_duration": 23, "break_duration": 9}


def test_coverage_durations_unchanged_when_topics_fit_or_no_time():
    assert calculate_coverage_durations(2, 300, 45, 15) == {"session_duration": 45, "break_duration": 15}
    assert calculate_coverage_durations(10, 0, 45, 15) == {"session_duration": 45, "break_duration": 15}
