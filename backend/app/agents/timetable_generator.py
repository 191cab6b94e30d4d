import logging
from typing import Any, Callable, Dict, Optional

from fastapi import HTTPException

from app.agents.data_curator import DataCuratorAgent
from app.agents.history_agent import HistoryAgent
from app.agents.json_repair import parse_schedule_response
from app.agents.llm_client import TimetableLLMClient
from app.agents.negotiator import NegotiatorAgent
from app.agents.notifier import notify_timetable_ready
from app.agents.policy_agent import PolicyComplianceAgent
from app.agents.prompt_builder import build_prompt
from app.agents.timetable_store import TimetableStore
from app.config import settings
from app.schemas import GenerateTimetableRequest

logger = logging.getLogger(__name__)


class TimetableGeneratorAgent:
    """Runs one timetable generation from request body to stored schedule."""

    def __init__(
        self,
        supabase,
        llm: Optional[TimetableLLMClient] = None,
        notify: Callable[[str], Any] = notify_timetable_ready,
    ):
        self.supabase = supabase
        self.llm = llm
        self.notify = notify
        self.curator = DataCuratorAgent()
        self.history = HistoryAgent(supabase)
        self.policy = PolicyComplianceAgent()
        self.negotiator = NegotiatorAgent()
        self.store = TimetableStore(supabase)

    def generate(self, user_id: str, request: GenerateTimetableRequest) -> Dict[str, Any]:
        max_days = settings.MAX_TIMETABLE_DAYS
        if request.range_days > max_days:
            raise HTTPException(
                status_code=400,
                detail=f"Date range too long. Maximum timetable length is {max_days // 7} weeks.",
            )

        ctx = self.curator.curate(request)
        history = self.history.collect(user_id, request)
        prompt = build_prompt(ctx, history)

        logger.info(
            "Generating timetable: %s subjects, %s topics, %s tests, %s homeworks, %s events, %s to %s, "
            "adaptive=%s, session=%s, break=%s",
            len(request.subjects), len(request.topics), len(request.test_dates), len(request.homeworks),
            len(ctx.events), request.start_date, request.end_date, ctx.adaptive.is_reduced,
            ctx.session_duration, ctx.break_duration,
        )

        if self.llm is None:
            self.llm = TimetableLLMClient()
        content = self.llm.complete(prompt)
        logger.debug("AI response head: %s", content[:300])
        logger.debug("AI response tail: %s", content[-300:])

        data = parse_schedule_response(content)
        schedule = data["schedule"]

        compliance = self.policy.enforce(schedule, ctx)
        counts = compliance["counts"]
        removed = counts["hallucinations"] + counts["overlaps"] + counts["time_window"]
        negotiation = self.negotiator.negotiate(schedule, ctx, history, removed)

        timetable_id = self.store.save(user_id, request, schedule)
        self.notify(user_id)

        return {
            "schedule": schedule,
            "timetable_id": timetable_id,
            "report": {
                "available_minutes": ctx.total_available_minutes,
                "required_minutes": ctx.total_required_minutes,
                "session_duration": ctx.session_duration,
                "break_duration": ctx.break_duration,
                "adaptive": ctx.adaptive.is_reduced,
                "removed": counts,
                **negotiation,
            },
        }
