import logging
import os
import secrets

from fastapi import Header, HTTPException


logger = logging.getLogger(__name__)


def verify_cron_secret(authorization: str | None = Header(default=None)) -> None:
    cron_secret = os.getenv("CRON_SECRET", "")
    if not cron_secret:
        logger.warning("CRON_SECRET not configured; rejecting cron request")
        raise HTTPException(status_code=503, detail="Cron endpoint not configured")
    expected = f"Bearer {cron_secret}"
    if not authorization or not secrets.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")
