import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from supabase import Client, ClientOptions, create_client

from app.agents.timetable_generator import TimetableGeneratorAgent
from app.config import settings

logger = logging.getLogger(__name__)


def get_supabase_client(authorization: Optional[str] = Header(default=None)) -> Client:
    """Supabase client acting as the caller, so row-level security applies."""
    headers = {"Authorization": authorization} if authorization else {}
    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY, options=ClientOptions(headers=headers))
    except Exception as e:
        logger.error("Supabase client could not be created: %s", e)
        raise HTTPException(status_code=500, detail="Database not configured")


def get_current_user_id(
    authorization: Optional[str] = Header(default=None),
    supabase: Client = Depends(get_supabase_client),
) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization")

    token = authorization.split(" ", 1)[1] if authorization.lower().startswith("bearer ") else authorization
    try:
        response = supabase.auth.get_user(token)
    except Exception as e:
        logger.error("Authentication error: %s", e)
        raise HTTPException(status_code=401, detail="Unauthorized")

    user = getattr(response, "user", None)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user.id


def get_timetable_generator(supabase: Client = Depends(get_supabase_client)) -> TimetableGeneratorAgent:
    return TimetableGeneratorAgent(supabase)
