import copy
import uuid
from types import SimpleNamespace

USER_ID = "9b2d7f4e-1c3a-4e8b-9f6d-2a5c8e7b1d40"
BIOLOGY_ID = "11111111-1111-4111-8111-111111111111"
CHEMISTRY_ID = "22222222-2222-4222-8222-222222222222"
EVENT_ID = "33333333-3333-4333-8333-333333333333"


def make_body(**overrides):
    """Request body for Mon 2026-11-02 to Tue 2026-11-03, studying Monday 16:00-20:00 only."""
    body = {
        "subjects": [{"id": BIOLOGY_ID, "name": "Biology", "exam_board": "AQA", "mode": "short-term-exam"}],
        "topics": [
            {"name": "Cell Structure", "subject_id": BIOLOGY_ID},
            {"name": "Photosynthesis", "subject_id": BIOLOGY_ID},
        ],
        "testDates": [],
        "preferences": {
            "daily_study_hours": 2,
            "day_time_slots": [
                {"day": "monday", "startTime": "16:00", "endTime": "20:00", "enabled": True},
                {"day": "tuesday", "startTime": "16:00", "endTime": "20:00", "enabled": False},
            ],
            "session_duration": 45,
            "break_duration": 10,
            "duration_mode": "flexible",
        },
        "homeworks": [],
        "events": [
            {
                "id": EVENT_ID,
                "title": "Football",
                "start_time": "2026-11-02T17:30:00",
                "end_time": "2026-11-02T18:00:00",
            }
        ],
        "startDate": "2026-11-02",
        "endDate": "2026-11-03",
    }
    body.update(overrides)
    return body


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.mode = None

    def select(self, *columns):
        return self

    def insert(self, row):
        self.op, self.payload = "insert", row
        return self

    def update(self, row):
        self.op, self.payload = "update", row
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        return self

    def limit(self, count):
        return self

    def maybe_single(self):
        self.mode = "maybe_single"
        return self

    def single(self):
        self.mode = "single"
        return self

    def execute(self):
        if self.table in self.db.failing:
            raise RuntimeError(f"relation {self.table} is unavailable")
        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            row = copy.deepcopy(self.payload)
            row.setdefault("id", str(uuid.uuid4()))
            rows.append(row)
            return FakeResponse([copy.deepcopy(row)])

        matched = [r for r in rows if all(r.get(col) == val for col, val in self.filters)]
        if self.op == "update":
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return FakeResponse(copy.deepcopy(matched))

        if self.mode == "maybe_single":
            return FakeResponse(matched[0]) if matched else None
        if self.mode == "single":
            if len(matched) != 1:
                raise RuntimeError("JSON object requested, multiple (or no) rows returned")
            return FakeResponse(matched[0])
        return FakeResponse(matched)


class FakeAuth:
    def __init__(self, tokens):
        self.tokens = tokens

    def get_user(self, token):
        if token not in self.tokens:
            raise RuntimeError("invalid JWT")
        return SimpleNamespace(user=SimpleNamespace(id=self.tokens[token]))


class FakeSupabase:
    """In-memory stand-in for the supabase-py client's table and auth APIs."""

    def __init__(self, tables=None, failing=(), tokens=None):
        self.tables = tables or {}
        self.failing = set(failing)
        self.auth = FakeAuth(tokens or {})

    def table(self, name):
        return FakeQuery(self, name)


class FakeLLM:
    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []

    def complete(self, prompt):
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def both_days_preferences(duration_mode="fixed"):
    prefs = make_body()["preferences"]
    prefs["day_time_slots"][1]["enabled"] = True
    prefs["duration_mode"] = duration_mode
    return prefs
