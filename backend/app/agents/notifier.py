import logging

import requests

from app.config import settings

logger = logging.getLogger(__name__)

PUSH_FUNCTION_PATH = "/functions/v1/send-push-notification"


def notify_timetable_ready(user_id: str, session=None) -> bool:
    """Ask the push-notification edge function to tell the user their timetable is ready.

    Failures are logged and reported as False; generation never fails because of them.
    """
    if not settings.SUPABASE_URL:
        return False
    http = session or requests
    try:
        response = http.post(
            settings.SUPABASE_URL.rstrip("/") + PUSH_FUNCTION_PATH,
            json={
                "user_id": user_id,
                "title": "Timetable Ready!",
                "body": "Your AI-powered study timetable has been generated successfully.",
                "tag": "timetable-generated",
                "data": {"url": "/timetables"},
            },
            headers={"Authorization": f"Bearer {settings.SUPABASE_KEY}"},
            timeout=10,
        )
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error("Error sending push notification: %s", e)
        return False
    logger.info("Push notification sent for timetable generation")
    return True
