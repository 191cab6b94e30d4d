import pytest

from app.agents.data_curator import DataCuratorAgent
from app.schemas import GenerateTimetableRequest
from fakes import FakeSupabase, make_body


@pytest.fixture
def make_request():
    def _make(**overrides):
        return GenerateTimetableRequest.model_validate(make_body(**overrides))

    return _make


@pytest.fixture
def make_context(make_request):
    def _make(**overrides):
        return DataCuratorAgent().curate(make_request(**overrides))

    return _make


@pytest.fixture
def fake_supabase():
    return FakeSupabase()
