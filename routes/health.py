from fastapi import APIRouter, Depends

from services.recognizer import Recognizer, get_recognizer

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health(recognizer: Recognizer = Depends(get_recognizer)):
    details = await recognizer.health()
    return {
        "status": "OK",
        "recognizer": details,
    }
