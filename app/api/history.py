from fastapi import APIRouter, Depends

from app.api.deps import get_recorder
from app.history.recorder import HistoryRecorder
from app.schemas.send import HistoryEntryOut

router = APIRouter(prefix="/api/history", tags=["history"])


@router.get("", response_model=list[HistoryEntryOut])
async def list_history(
    limit: int | None = None,
    recorder: HistoryRecorder = Depends(get_recorder),
):
    """List delivered sends, newest first."""
    return await recorder.recent(limit)


@router.delete("", status_code=204)
async def clear_history(recorder: HistoryRecorder = Depends(get_recorder)):
    await recorder.clear()
