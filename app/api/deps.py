from fastapi import HTTPException

from app.history.recorder import HistoryRecorder
from app.output.router import DispatchCoordinator
from app.output.service import dispatch_service


async def get_coordinator() -> DispatchCoordinator:
    if dispatch_service.coordinator is None:
        raise HTTPException(status_code=503, detail="Dispatch service not initialized")
    return dispatch_service.coordinator


async def get_recorder() -> HistoryRecorder:
    if dispatch_service.recorder is None:
        raise HTTPException(status_code=503, detail="Dispatch service not initialized")
    return dispatch_service.recorder
