import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))

from supabase import create_client

from app.agents.timetable_generator import TimetableGeneratorAgent
from app.config import settings
from app.schemas import GenerateTimetableRequest

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_REQUEST = Path(__file__).parent / "sample_request.json"


def main():
    parser = argparse.ArgumentParser(description="Generate a timetable for a sample request")
    parser.add_argument("--user-id", required=True, help="user the timetable is stored for")
    parser.add_argument("--request", default=str(SAMPLE_REQUEST), help="request body JSON file")
    args = parser.parse_args()

    with open(args.request, encoding="utf-8") as f:
        payload = GenerateTimetableRequest.model_validate(json.load(f))

    # SUPABASE_KEY must be a service-role key here, there is no user session
    supabase = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    agent = TimetableGeneratorAgent(supabase, notify=lambda user_id: None)
    result = agent.generate(args.user_id, payload)

    logger.info("Stored timetable %s", result["timetable_id"])
    logger.info("Report: %s", json.dumps(result["report"], indent=2))
    for date_str, sessions in sorted(result["schedule"].items()):
        for session in sessions:
            logger.info("%s %s %4s min %-10s %s", date_str, session.get("time"), session.get("duration"),
                        session.get("type"), session.get("topic", ""))


if __name__ == "__main__":
    main()
