import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.timetable import router as timetable_router
from app.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="AI Study Timetable Generator",
    description="Builds personalised study timetables from subjects, topics and commitments",
    version="1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(timetable_router)


@app.get("/")
def home():
    return {"message": "Welcome to the AI Study Timetable Generator! Visit /docs for API"}
