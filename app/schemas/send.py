import uuid
from datetime import datetime

from pydantic import BaseModel

from app.output.base import DeliveryOutcome, Destination, SendStatus
from app.output.router import DispatchSession


class DestinationStatusOut(BaseModel):
    outcome: DeliveryOutcome
    error: str | None = None


class SendOut(BaseModel):
    session_id: str
    dispatched: bool
    status: SendStatus | None = None
    destinations: dict[Destination, DestinationStatusOut]

    @classmethod
    def from_session(cls, session: DispatchSession) -> "SendOut":
        result = session.result()
        return cls(
            session_id=session.id,
            dispatched=result.dispatched,
            status=result.status,
            destinations={
                d: DestinationStatusOut(outcome=o, error=result.errors.get(d))
                for d, o in result.outcomes.items()
            },
        )


class HistoryEntryOut(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    text: str
    destinations: list[str]
    status: str
    created_at: datetime
