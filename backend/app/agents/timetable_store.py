import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException

from app.schemas import GenerateTimetableRequest

logger = logging.getLogger(__name__)

TABLE = "timetables"


class TimetableStore:
    def __init__(self, supabase):
        self.supabase = supabase

    def save(self, user_id: str, request: GenerateTimetableRequest, schedule: Dict[str, Any]) -> Optional[str]:
        """Insert a new timetable row, or overwrite ``request.timetable_id`` when given."""
        row = {
            "schedule": schedule,
            "subjects": [s.model_dump() for s in request.subjects],
            "topics": [t.model_dump() for t in request.topics],
            "test_dates": [td.model_dump() for td in request.test_dates],
            "preferences": request.preferences.model_dump(by_alias=True, exclude_none=True),
            "start_date": request.start_date,
            "end_date": request.end_date,
        }
        try:
            if request.timetable_id:
                response = (
                    self.supabase.table(TABLE)
                    .update(row)
                    .eq("id", request.timetable_id)
                    .eq("user_id", user_id)
                    .execute()
                )
                if not response.data:
                    raise HTTPException(status_code=404, detail=f"Timetable {request.timetable_id} not found")
            else:
                row["user_id"] = user_id
                row["name"] = request.name or f"Study timetable {request.start_date} to {request.end_date}"
                response = self.supabase.table(TABLE).insert(row).execute()
        except HTTPException:
            raise
        except Exception as e:
            logger.error("Error saving timetable: %s", e)
            raise HTTPException(status_code=500, detail=f"Error saving timetable: {str(e)}")

        saved = response.data[0] if response.data else {}
        logger.info("Saved timetable %s for user %s", saved.get("id"), user_id)
        return saved.get("id", request.timetable_id)

    def get(self, user_id: str, timetable_id: str) -> Dict[str, Any]:
        try:
            response = (
                self.supabase.table(TABLE)
                .select("*")
                .eq("id", timetable_id)
                .eq("user_id", user_id)
                .execute()
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Error fetching timetable: {str(e)}")
        if not response.data:
            raise HTTPException(status_code=404, detail=f"Timetable {timetable_id} not found")
        return response.data[0]
