from fastapi import APIRouter

from utils.ffmpeg_tools import check_ffmpeg_available


router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {"ok": True, "ffmpeg": check_ffmpeg_available()}
