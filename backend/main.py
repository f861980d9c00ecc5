import logging
import os
from pathlib import Path

from dotenv import load_dotenv

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from handlers.health_handler import router as health_router
from handlers.media_handler import router as media_router

ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(ROOT_DIR / ".env")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


def _attach_file_handler(
    logger_name: str,
    log_file_path: Path,
    level_name: str | None = None,
) -> None:
    logger_level = (level_name or LOG_LEVEL).upper()
    logger_level_value = getattr(logging, logger_level, logging.INFO)

    log_file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setLevel(logger_level_value)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )

    target_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(log_file_path)
        for handler in target_logger.handlers
    ):
        target_logger.addHandler(file_handler)
    target_logger.setLevel(logger_level_value)


MEDIA_PROCESSING_LOG_FILE = os.getenv(
    "MEDIA_PROCESSING_LOG_FILE", "backend/log/media_processing.log"
).strip()
MEDIA_PROCESSING_LOG_LEVEL = os.getenv("MEDIA_PROCESSING_LOG_LEVEL", "INFO").strip()
if MEDIA_PROCESSING_LOG_FILE:
    media_log_path = Path(MEDIA_PROCESSING_LOG_FILE)
    if not media_log_path.is_absolute():
        media_log_path = ROOT_DIR / media_log_path
    _attach_file_handler("handlers.media_handler", media_log_path, level_name=MEDIA_PROCESSING_LOG_LEVEL)
    _attach_file_handler("operators.media_job_operator", media_log_path, level_name=MEDIA_PROCESSING_LOG_LEVEL)
    _attach_file_handler("operators.video_project_operator", media_log_path, level_name=MEDIA_PROCESSING_LOG_LEVEL)

app = FastAPI(title="Media Processing Backend")


app.include_router(health_router)
app.include_router(media_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
