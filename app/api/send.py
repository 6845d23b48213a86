from dataclasses import replace

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile

from app.api.deps import get_coordinator
from app.config import settings
from app.output.base import (
    Attachment,
    BotCredentials,
    Destination,
    DestinationConfig,
    Message,
    RichEmbed,
    WebhookCredentials,
)
from app.output.router import DispatchCoordinator
from app.schemas.send import SendOut

router = APIRouter(prefix="/api", tags=["send"])
logger = structlog.get_logger()


@router.post("/send", response_model=SendOut)
async def send_message(
    response: Response,
    text: str = Form(""),
    destinations: list[Destination] = Form(default=[]),
    embed_title: str = Form(""),
    embed_description: str = Form(""),
    embed_color: int | None = Form(None),
    webhook_url: str | None = Form(None),
    bot_token: str | None = Form(None),
    bot_chat_id: str | None = Form(None),
    wait: bool = Form(True),
    files: list[UploadFile] = File(default=[]),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    """Send one message to the selected destinations.

    With wait=false the call returns 202 right away; poll GET /api/sends/{id}.
    """
    attachments = []
    for upload in files:
        attachments.append(Attachment(
            data=await upload.read(),
            mime_type=upload.content_type or "application/octet-stream",
            filename=upload.filename or "file",
        ))

    embed = None
    if embed_title or embed_description:
        embed = RichEmbed(title=embed_title, description=embed_description, color=embed_color)

    message = Message(text=text, attachments=tuple(attachments), embed=embed)
    configs = _destination_configs(set(destinations), webhook_url, bot_token, bot_chat_id)

    session = coordinator.start(message, configs)
    logger.info(
        "api.send",
        session_id=session.id,
        destinations=[d.value for d in destinations],
        attachments=len(attachments),
    )
    if wait:
        await session.wait()
    else:
        response.status_code = 202
    return SendOut.from_session(session)


@router.get("/sends/{session_id}", response_model=SendOut)
async def get_send(
    session_id: str,
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    session = coordinator.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Send not found")
    return SendOut.from_session(session)


@router.post("/sends/{session_id}/retry/{destination}", response_model=SendOut)
async def retry_destination(
    session_id: str,
    destination: Destination,
    include_embed: bool = Form(True),
    webhook_url: str | None = Form(None),
    bot_token: str | None = Form(None),
    bot_chat_id: str | None = Form(None),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    """Retry one errored destination of an earlier send."""
    session = coordinator.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Send not found")

    # Supplied fields override the credentials held by the send; the rest are kept
    if destination == Destination.WEBHOOK:
        overrides = {"url": webhook_url}
    else:
        overrides = {"token": bot_token, "chat_id": bot_chat_id}
    overrides = {k: v for k, v in overrides.items() if v is not None}

    config = None
    if overrides:
        current = session.configs[destination]
        config = replace(current, credentials=replace(current.credentials, **overrides))

    session = coordinator.start_retry(session_id, destination, include_embed, config)

    await session.wait()
    return SendOut.from_session(session)


def _destination_configs(
    selected: set[Destination],
    webhook_url: str | None,
    bot_token: str | None,
    bot_chat_id: str | None,
) -> dict[Destination, DestinationConfig]:
    """Build per-destination configs from settings, with optional per-request overrides."""
    return {
        Destination.WEBHOOK: DestinationConfig(
            WebhookCredentials(url=webhook_url if webhook_url is not None else settings.WEBHOOK_URL),
            enabled=Destination.WEBHOOK in selected,
        ),
        Destination.BOT: DestinationConfig(
            BotCredentials(
                token=bot_token if bot_token is not None else settings.BOT_TOKEN,
                chat_id=bot_chat_id if bot_chat_id is not None else settings.BOT_CHAT_ID,
            ),
            enabled=Destination.BOT in selected,
        ),
    }
