"""Turns a curated request and the student's history into the model prompt."""

from datetime import timedelta
from typing import List

from app.agents.data_curator import TimetableContext, parse_event_time
from app.agents.history_agent import MAX_REPORTED_STRUGGLES, LearningHistory
from app.agents.time_slots import EVENT_BUFFER_MINUTES, MIN_SESSION_DURATION

RULE = "=" * 52

SYSTEM_PROMPT = (
    "You are an expert educational planner. Return ONLY valid JSON - no markdown, no code fences. "
    "Start with { and end with }. Keep topic names SHORT (max 50 chars). Keep session notes BRIEF "
    "(max 30 chars). Ensure ALL braces and brackets are properly closed. NO trailing commas. "
    "CRITICAL: Complete the ENTIRE JSON response."
)

MODE_LABELS = {
    "short-term-exam": "Short-Term Exam Prep",
    "long-term-exam": "Long-Term Exam Prep",
    "no-exam": "No Exam Focus",
}


def _banner(title: str, body: str) -> str:
    return f"\n{RULE}\n{title}\n{RULE}\n\n{body}\n{RULE}\n"


def _hhmm(value) -> str:
    return value.strftime("%H:%M")


def free_slots_section(ctx: TimetableContext) -> str:
    days = []
    for date_str, day in ctx.day_free_slots.items():
        if not day.free_slots:
            continue
        events = ctx.events_by_date.get(date_str, [])
        if events:
            blocked = "\n".join(f"  BLOCKED: {_hhmm(e.start)} - {_hhmm(e.end)} ({e.title})" for e in events)
        else:
            blocked = "  (No events)"
        free = "\n".join(
            f"  FREE: {s.free_from} - {s.free_to} ({s.duration_mins} mins available)" for s in day.free_slots
        )
        days.append(
            f"{date_str} ({day.day_name}):\n{blocked}\n{free}\n   Total available: {day.total_free_minutes} minutes"
        )

    session, brk = ctx.adaptive.session_duration, ctx.adaptive.break_duration
    body = (
        "CRITICAL: These are the ONLY times you can schedule study sessions.\n"
        f"There is a {EVENT_BUFFER_MINUTES}-minute buffer before each event.\n"
        "Sessions MUST END before the free slot ends - calculate: start_time + duration < slot_end\n\n"
        + "\n\n".join(days)
        + "\n\nSCHEDULING RULES (NON-NEGOTIABLE):\n"
        "1. ONLY schedule sessions during FREE time slots listed above\n"
        "2. Sessions MUST END before the free slot ends\n"
        "3. Calculate: session_end = start_time + duration_minutes\n"
        "4. If session_end would exceed slot end, DO NOT schedule it there\n"
        f"5. Leave {EVENT_BUFFER_MINUTES} minutes buffer before events\n"
        "6. NEVER schedule during BLOCKED times\n"
        "7. Fill ALL available free slots with productive study sessions\n"
        f"8. After each study session, add a break ({brk} mins)\n\n"
        "Example: If FREE slot is 17:30 - 19:45 (135 mins):\n"
        f"- Session 1: 17:30 ({session} mins) -> OK if it ends within the slot\n"
        f"- Break: {brk} mins\n"
        "- Session 2: Start after break, check it fits before 19:45\n"
        f"- If remaining time < {MIN_SESSION_DURATION + brk} mins, slot is full"
    )
    return _banner("EXACT AVAILABLE TIME SLOTS - SCHEDULE ONLY IN THESE WINDOWS", body)


def events_section(ctx: TimetableContext) -> str:
    if not ctx.events:
        return ""
    lines = []
    for event in ctx.events:
        start = parse_event_time(event.start_time)
        end = parse_event_time(event.end_time)
        buffer_end = start - timedelta(minutes=EVENT_BUFFER_MINUTES)
        lines.append(
            f'"{event.title}" on {start.date().isoformat()}: {_hhmm(start)} - {_hhmm(end)}\n'
            f"   -> Sessions must END by {_hhmm(buffer_end)} ({EVENT_BUFFER_MINUTES}min buffer)"
        )
    body = "\n".join(lines) + "\n\nEvents are USER COMMITMENTS (not study topics). DO NOT add them as sessions!"
    return _banner("BLOCKED EVENT TIMES - DO NOT SCHEDULE HERE", body)


def adaptive_section(ctx: TimetableContext) -> str:
    if not ctx.adaptive.is_reduced:
        return ""
    prefs = ctx.request.preferences
    body = (
        "Time is limited! Sessions have been shortened to fit all content:\n"
        f"- Original session duration: {prefs.session_duration} mins\n"
        f"- Adjusted session duration: {ctx.adaptive.session_duration} mins\n"
        f"- Original break duration: {prefs.break_duration} mins\n"
        f"- Adjusted break duration: {ctx.adaptive.break_duration} mins\n\n"
        "USE THESE ADJUSTED DURATIONS for all sessions."
    )
    return _banner("ADAPTIVE FITTING ACTIVE", body)


def mode_section(ctx: TimetableContext) -> str:
    session, brk = ctx.adaptive.session_duration, ctx.adaptive.break_duration
    mode = ctx.request.timetable_mode
    if mode == "short-term-exam":
        return (
            "TIMETABLE MODE: SHORT-TERM EXAM PREP (INTENSIVE)\n"
            f"- Revision sessions: {session} mins\n- Breaks: {brk} mins\n"
            "- Daily sessions: 4-6 intensive sessions\n- Review topics every 2-3 days"
        )
    if mode == "long-term-exam":
        return (
            "TIMETABLE MODE: LONG-TERM EXAM PREP (BALANCED)\n"
            f"- Revision sessions: {session} mins\n- Breaks: {brk} mins\n"
            "- Daily sessions: 3-4 balanced sessions\n- Review topics every 5-7 days"
        )
    if mode == "no-exam":
        return (
            "TIMETABLE MODE: NO EXAM FOCUS\n- Homework first, then general revision\n"
            f"- Sessions: {session} mins\n- Breaks: {brk} mins"
        )
    return f"TIMETABLE MODE: BALANCED - Sessions: {session} mins, Breaks: {brk} mins"


def school_section(history: LearningHistory) -> str:
    school = history.school_hours
    if not school:
        return ""
    start, end = school["school_start_time"], school["school_end_time"]
    before = (
        f"BEFORE SCHOOL ENABLED: {school.get('before_school_start')} - {school.get('before_school_end')}"
        if school.get("study_before_school") is True
        else "BEFORE SCHOOL DISABLED"
    )
    lunch = (
        f"LUNCH TIME ENABLED: {school.get('lunch_start')} - {school.get('lunch_end')}"
        if school.get("study_during_lunch") is True
        else "LUNCH TIME DISABLED"
    )
    free_periods = "FREE PERIODS ENABLED" if school.get("study_during_free_periods") is True else "FREE PERIODS DISABLED"
    body = (
        "SCHOOL TIMES (BLOCKED on weekdays Mon-Fri):\n"
        f"   Leave for school: {start}\n   Return from school: {end}\n\n"
        f"NEVER schedule study between {start} and {end} on weekdays.\n"
        "Weekends (Saturday, Sunday) are NOT affected by school hours.\n\n"
        f"{before}\n{lunch}\n{free_periods}"
    )
    return _banner("SCHOOL HOURS BLOCKING - ABSOLUTE PRIORITY", body)


def peak_hours_section(history: LearningHistory) -> str:
    peak = history.peak_hours
    if not peak:
        return ""
    best = str(peak.get("bestTimeWindow", "")).upper()
    worst = str(peak.get("worstTimeWindow", "")).upper()
    body = (
        "Based on this user's past performance:\n"
        f"BEST PERFORMANCE: {best} ({peak.get('bestTimeRange', '')})\n"
        f"MOST CHALLENGING: {worst} ({peak.get('worstTimeRange', '')})\n\n"
        f"SMART SCHEDULING STRATEGY:\n{peak.get('recommendation', '')}\n\n"
        f"Schedule DIFFICULT topics during {best} hours.\n"
        f"Schedule EASIER topics during {worst} hours."
    )
    return _banner("PEAK STUDY HOURS - PERSONALIZED SCHEDULING", body)


def struggle_section(history: LearningHistory, limit: int = MAX_REPORTED_STRUGGLES) -> str:
    if not history.struggle_topics:
        return ""
    entries = "\n\n".join(
        f'{i}. "{s["topic"]}" ({s["subject"]})\n   -> {s["reason"]}\n   -> Severity score: {s["severity"]:.1f}/10'
        for i, s in enumerate(history.struggle_topics[:limit], start=1)
    )
    body = (
        "Based on this user's ENTIRE study history, they struggle with these topics:\n\n"
        f"{entries}\n\n"
        "IMPORTANT: Give these topics EXTRA study time even if NOT explicitly marked as difficult!\n"
        "IMPORTANT: Schedule these topics during PEAK PERFORMANCE hours.\n"
        "IMPORTANT: Consider shorter sessions with more repetition for these topics."
    )
    return _banner("HISTORICAL STRUGGLE ANALYSIS (AUTO-DETECTED)", body)


def coverage_section(ctx: TimetableContext, history: LearningHistory) -> str:
    total_topics = len(ctx.request.topics)
    per_day = -(-total_topics // ctx.total_days)
    session, brk = ctx.session_duration, ctx.break_duration
    boosted = ""
    if history.boosted_topics:
        boosted = "\nAUTO-BOOSTED TOPICS (from historical data):\n" + "\n".join(
            f"  - {t['topic']} ({t['subject']})" for t in history.boosted_topics
        ) + "\n"
    body = (
        "EVERY topic MUST be scheduled AT LEAST ONCE - NO EXCEPTIONS!\n\n"
        "COVERAGE STATS:\n"
        f"- Total topics to cover: {total_topics}\n"
        f"- Days available: {ctx.total_days}\n"
        f"- Avg topics per day needed: {per_day}\n"
        f"- Available study time: {ctx.total_available_minutes} minutes "
        f"({ctx.total_available_minutes / 60:.1f} hours)\n\n"
        "PRIORITY HIERARCHY (allocate time accordingly):\n"
        f"1. HIGH PRIORITY ({len(history.boosted_topics)} topics) - Historical struggles + user-marked difficult\n"
        f"   -> Schedule 2-3 sessions of {session} mins each\n"
        "   -> Schedule during PEAK performance hours\n"
        "2. MEDIUM PRIORITY - Topics with upcoming tests\n"
        f"   -> Schedule 1-2 sessions of {session} mins each\n"
        "3. STANDARD PRIORITY - All other topics\n"
        f"   -> Schedule at least 1 session of {session} mins\n"
        f"{boosted}\n"
        "CRITICAL: If time is limited:\n"
        f"- REDUCE session duration (minimum {session} mins)\n"
        f"- REDUCE break duration (minimum {brk} mins)\n"
        "- NEVER SKIP a topic entirely!"
    )
    return _banner("FULL TOPIC COVERAGE REQUIREMENT", body)


def subjects_line(ctx: TimetableContext) -> str:
    return "; ".join(
        f"{s.name} ({s.exam_board}) - MODE: {MODE_LABELS.get(s.mode, MODE_LABELS['no-exam'])}"
        for s in ctx.request.subjects
    )


def topics_line(ctx: TimetableContext) -> str:
    subjects = {s.id: s.name for s in ctx.request.subjects}
    parts = []
    for topic in ctx.request.topics:
        tests = [td for td in ctx.request.test_dates if td.subject_id == topic.subject_id]
        test_info = f" - TEST DATE: {tests[0].test_date}" if tests else ""
        parts.append(f"{topic.name} ({subjects.get(topic.subject_id)}{test_info})")
    return "; ".join(parts)


def tests_line(ctx: TimetableContext) -> str:
    subjects = {s.id: s.name for s in ctx.request.subjects}
    return "; ".join(
        f"{subjects.get(td.subject_id)} {td.test_type} on {td.test_date}" for td in ctx.request.test_dates
    )


def homework_section(ctx: TimetableContext) -> str:
    if not ctx.relevant_homework:
        return "No homework assignments"
    lines = [
        f'- "{hw.title}" ({hw.subject}) - DUE: {hw.due_date}, DURATION: {hw.duration or 60} minutes'
        f" - MUST BE SCHEDULED BEFORE {hw.due_date}"
        for hw in ctx.relevant_homework
    ]
    return (
        "**HOMEWORK ASSIGNMENTS (ALL MUST BE SCHEDULED - MANDATORY):**\n"
        + "\n".join(lines)
        + "\n\nHOMEWORK MUST BE COMPLETED BEFORE DUE DATE - NEVER ON THE DUE DATE ITSELF"
    )


def priority_section(ctx: TimetableContext) -> str:
    analysis = ctx.request.topic_analysis
    if not analysis or not analysis.priorities:
        return ""
    ranked = sorted(analysis.priorities, key=lambda p: p.priority_score, reverse=True)
    return "**FOCUS TOPICS (need MORE study time):**\n" + "\n".join(
        f'- {p.topic_name}: Priority {p.priority_score:g}/10 - "{p.reasoning}"' for p in ranked
    )


def user_notes_section(ctx: TimetableContext) -> str:
    if not ctx.request.ai_notes:
        return ""
    return f"**USER'S CUSTOM INSTRUCTIONS (MUST FOLLOW):**\n{ctx.request.ai_notes}"


def _output_format(ctx: TimetableContext) -> str:
    return (
        "**OUTPUT FORMAT (JSON only, no markdown):**\n"
        "{\n"
        '  "schedule": {\n'
        '    "YYYY-MM-DD": [\n'
        "      {\n"
        '        "time": "HH:MM",\n'
        f'        "duration": {ctx.session_duration},\n'
        '        "subject": "subject name",\n'
        '        "topic": "topic name",\n'
        '        "type": "practice|exam_questions|homework|revision|break",\n'
        '        "notes": "Resource recommendation",\n'
        f'        "mode": "{ctx.mode}"\n'
        "      }\n"
        "    ]\n"
        "  }\n"
        "}\n\n"
        "Session types:\n"
        '- "practice": Active practice (first session for a topic)\n'
        '- "exam_questions": Past paper practice (second session)\n'
        '- "homework": Homework assignment\n'
        '- "revision": General revision\n'
        '- "break": Rest period'
    )


def build_prompt(ctx: TimetableContext, history: LearningHistory) -> str:
    req = ctx.request
    prefs = req.preferences
    total_topics = len(req.topics)
    session, brk = ctx.session_duration, ctx.break_duration
    enabled_days = ", ".join(
        f"{slot.day} ({slot.start_time}-{slot.end_time})" for slot in prefs.day_time_slots if slot.enabled
    )

    requirements = (
        "**CRITICAL REQUIREMENTS:**\n"
        "1. ONLY schedule in the FREE time slots listed above\n"
        "2. ALL sessions MUST end BEFORE the free slot ends\n"
        f"3. Include ALL {total_topics} topics at least once - NO EXCEPTIONS\n"
        "4. Include ALL homework BEFORE due dates\n"
        f"5. Add {brk}-min breaks between sessions\n"
        "6. NEVER schedule during BLOCKED event times\n"
        "7. Events are NOT study topics - do NOT add them as sessions\n"
        f"8. Aim for ~{prefs.daily_study_hours:g} hours/day of STUDY (exclude breaks). "
        "Don't over-schedule once all topics + homework are covered.\n"
        "9. Give EXTRA sessions to topics marked as historical struggles (2+ sessions total)\n"
        f"10. If time is limited, use shorter {session}-min sessions to fit ALL topics"
    )
    verification = (
        "VERIFICATION BEFORE RESPONDING:\n"
        "- Every session starts and ends within a FREE slot\n"
        "- No sessions overlap with BLOCKED times\n"
        f"- ALL {total_topics} topics included at least once\n"
        "- Historical struggle topics have 2+ sessions\n"
        "- All homework scheduled before due dates\n"
        "- Breaks added between sessions"
    )

    sections: List[str] = [
        "You are an expert educational planner. Create a study timetable.",
        free_slots_section(ctx),
        events_section(ctx),
        adaptive_section(ctx),
        mode_section(ctx),
        school_section(history),
        peak_hours_section(history),
        struggle_section(history),
        coverage_section(ctx, history),
        f"SUBJECTS: {subjects_line(ctx)}",
        f"ALL TOPICS TO COVER (schedule ALL of these): {topics_line(ctx)}",
        f"UPCOMING TESTS: {tests_line(ctx)}",
        homework_section(ctx),
        priority_section(ctx),
        user_notes_section(ctx),
        "STUDY PREFERENCES:\n"
        f"- Daily study hours target: {prefs.daily_study_hours:g}\n"
        f"- Available days: {enabled_days}\n"
        f"- Session duration: {session} minutes (adjusted for full coverage)\n"
        f"- Break duration: {brk} minutes",
        f"TIMETABLE PERIOD: {req.start_date} to {req.end_date}",
        requirements,
        _output_format(ctx),
        verification,
    ]
    return "\n\n".join(s.strip("\n") for s in sections if s)
