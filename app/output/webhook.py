"""
Webhook channel: one multipart POST per send to a single webhook URL.

- text goes into payload_json.content (truncated to the channel limit)
- embeds are native, serialized into payload_json.embeds
- user attachments are files[N]; the overflow file has its own field
"""

import json

import httpx
import structlog

from app.config import settings
from app.output.base import Attachment, Destination, Message, RichEmbed, WebhookCredentials
from app.output.errors import TransportError
from app.output.splitter import split

logger = structlog.get_logger()

OVERFLOW_FIELD = "overflow_file"


class WebhookChannel:
    destination = Destination.WEBHOOK
    supports_embeds = True

    def __init__(self, http: httpx.AsyncClient, char_limit: int | None = None):
        self._http = http
        self.char_limit = char_limit or settings.WEBHOOK_CHAR_LIMIT

    async def deliver(self, message: Message, credentials: WebhookCredentials) -> None:
        """Send the message in a single request. Raises TransportError on non-2xx."""
        content, overflow = split(message.text, self.char_limit)

        payload: dict = {}
        if content:
            payload["content"] = content
        if message.embed is not None and message.embed.is_populated:
            payload["embeds"] = [_serialize_embed(message.embed)]

        files = []
        if overflow is not None:
            files.append((OVERFLOW_FIELD, _file_part(overflow)))
        for index, att in enumerate(message.attachments):
            files.append((f"files[{index}]", _file_part(att)))

        if not payload and not files:
            logger.info("output.webhook.nothing_to_send")
            return

        # payload_json is a filename-less part so the body is always multipart
        parts = [("payload_json", (None, json.dumps(payload), "application/json")), *files]
        resp = await self._http.post(credentials.url, files=parts)

        if not resp.is_success:
            logger.warning("output.webhook.failed", status=resp.status_code)
            raise TransportError(resp.status_code, "webhook")

        logger.info(
            "output.webhook.sent",
            files=len(files),
            overflow=overflow is not None,
            embed="embeds" in payload,
        )


def _serialize_embed(embed: RichEmbed) -> dict:
    data = {}
    if embed.title:
        data["title"] = embed.title
    if embed.description:
        data["description"] = embed.description
    if embed.color is not None:
        data["color"] = embed.color
    return data


def _file_part(att: Attachment) -> tuple[str, bytes, str]:
    return (att.filename, att.data, att.mime_type)
