"""
Bot channel: chat-style bot API with stricter per-call limits.

A single send becomes a strictly ordered sequence of calls:
1. sendMessage with the inline text
2. the overflow file, if the text was too long
3. image/video attachments as media groups (batches of up to 10)
4. every other attachment on its own

The first failing call aborts the remaining steps.
"""

import json

import httpx
import structlog

from app.config import settings
from app.output.base import Attachment, BotCredentials, Destination, Message
from app.output.errors import FallbackExhaustedError, TransportError
from app.output.splitter import split

logger = structlog.get_logger()

DOCUMENT_METHOD = ("sendDocument", "document")

# mime prefix -> (method, file field)
TYPED_METHODS = {
    "image/": ("sendPhoto", "photo"),
    "audio/": ("sendAudio", "audio"),
    "video/": ("sendVideo", "video"),
}


def select_method(mime_type: str) -> tuple[str, str]:
    """Pick the upload method and its file field for a MIME type."""
    for prefix, method in TYPED_METHODS.items():
        if mime_type.startswith(prefix):
            return method
    return DOCUMENT_METHOD


def partition(attachments: tuple[Attachment, ...]) -> tuple[list[Attachment], list[Attachment]]:
    """Split attachments into (groupable, individual), preserving order."""
    groupable = [a for a in attachments if a.is_groupable]
    individual = [a for a in attachments if not a.is_groupable]
    return groupable, individual


def batches(items: list, size: int) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class BotChannel:
    destination = Destination.BOT
    supports_embeds = False

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_base: str | None = None,
        char_limit: int | None = None,
        media_group_size: int | None = None,
    ):
        self._http = http
        self._api_base = (api_base or settings.BOT_API_BASE).rstrip("/")
        self.char_limit = char_limit or settings.BOT_CHAR_LIMIT
        self.media_group_size = media_group_size or settings.BOT_MEDIA_GROUP_SIZE

    async def deliver(self, message: Message, credentials: BotCredentials) -> None:
        base_url = f"{self._api_base}/bot{credentials.token}"
        chat_id = credentials.chat_id

        text, overflow = split(message.text, self.char_limit)
        if text:
            await self._send_text(base_url, chat_id, text)
        if overflow is not None:
            await self._send_file(base_url, chat_id, overflow)

        groupable, individual = partition(message.attachments)
        for batch in batches(groupable, self.media_group_size):
            if len(batch) == 1:
                await self._send_file(base_url, chat_id, batch[0])
            else:
                await self._send_media_group(base_url, chat_id, batch)

        for att in individual:
            await self._send_file(base_url, chat_id, att)

    # ------------------------------------------------------------------
    # Physical calls
    # ------------------------------------------------------------------

    async def _send_text(self, base_url: str, chat_id: str, text: str):
        resp = await self._http.post(
            f"{base_url}/sendMessage",
            params={"chat_id": chat_id, "text": text, "parse_mode": "Markdown"},
        )
        if not resp.is_success:
            logger.warning("output.bot.text_failed", status=resp.status_code)
            raise TransportError(resp.status_code, "sendMessage")
        logger.info("output.bot.text_sent", length=len(text))

    async def _upload(self, base_url: str, chat_id: str, att: Attachment, method: str, field: str):
        return await self._http.post(
            f"{base_url}/{method}",
            data={"chat_id": chat_id},
            files={field: (att.filename, att.data, att.mime_type)},
        )

    async def _send_file(self, base_url: str, chat_id: str, att: Attachment):
        """Upload one file with the type-specific method, falling back to sendDocument once."""
        method, field = select_method(att.mime_type)
        resp = await self._upload(base_url, chat_id, att, method, field)
        if resp.is_success:
            logger.info("output.bot.file_sent", method=method, filename=att.filename)
            return

        if (method, field) == DOCUMENT_METHOD:
            logger.warning("output.bot.file_failed", method=method, status=resp.status_code)
            raise TransportError(resp.status_code, method)

        logger.warning(
            "output.bot.fallback", method=method, status=resp.status_code, filename=att.filename
        )
        fallback = await self._upload(base_url, chat_id, att, *DOCUMENT_METHOD)
        if not fallback.is_success:
            raise FallbackExhaustedError(method, resp.status_code, fallback.status_code)
        logger.info("output.bot.file_sent", method=DOCUMENT_METHOD[0], filename=att.filename)

    async def _send_media_group(self, base_url: str, chat_id: str, batch: list[Attachment]):
        media = []
        files = []
        for index, att in enumerate(batch):
            key = f"file{index}"
            media.append({
                "type": "video" if att.mime_type.startswith("video/") else "photo",
                "media": f"attach://{key}",
            })
            files.append((key, (att.filename, att.data, att.mime_type)))

        resp = await self._http.post(
            f"{base_url}/sendMediaGroup",
            data={"chat_id": chat_id, "media": json.dumps(media)},
            files=files,
        )
        if not resp.is_success:
            logger.warning("output.bot.media_group_failed", status=resp.status_code, size=len(batch))
            raise TransportError(resp.status_code, "sendMediaGroup")
        logger.info("output.bot.media_group_sent", size=len(batch))
