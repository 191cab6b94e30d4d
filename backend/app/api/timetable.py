import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from app.agents.timetable_generator import TimetableGeneratorAgent
from app.agents.timetable_store import TimetableStore
from app.api.deps import get_current_user_id, get_supabase_client, get_timetable_generator
from app.schemas import GenerateTimetableRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/timetable", tags=["timetable"])


@router.post("/generate")
async def generate_timetable(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    agent: TimetableGeneratorAgent = Depends(get_timetable_generator),
):
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(
            status_code=400,
            content={"detail": "Invalid input data", "errors": [{"msg": "Request body is not valid JSON"}]},
        )

    try:
        payload = GenerateTimetableRequest.model_validate(body)
    except ValidationError as e:
        logger.error("Validation error: %s", e)
        return JSONResponse(
            status_code=400,
            content={"detail": "Invalid input data", "errors": json.loads(e.json(include_url=False))},
        )

    try:
        return await run_in_threadpool(agent.generate, user_id, payload)
    except HTTPException as e:
        raise e
    except Exception as e:
        logger.exception("Error in timetable generation")
        raise HTTPException(status_code=500, detail=f"Generation failed: {str(e)}")


@router.get("/{timetable_id}")
def get_timetable(
    timetable_id: str,
    user_id: str = Depends(get_current_user_id),
    supabase=Depends(get_supabase_client),
):
    return {"timetable": TimetableStore(supabase).get(user_id, timetable_id)}
