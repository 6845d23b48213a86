from __future__ import annotations

import json
import re

import httpx
import pytest

from app.output.base import (
    Attachment,
    BotCredentials,
    Destination,
    DestinationConfig,
    WebhookCredentials,
)

WEBHOOK_URL = "https://hooks.example.com/api/webhooks/1/abc"
BOT_API_BASE = "https://bot.example.com"
BOT_TOKEN = "123:abc"
CHAT_ID = "-100200"


class BackendSpy:
    """Records every outbound request and answers with a configurable responder."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.failures: dict[str, list[int]] = {}

    def fail(self, key: str, *statuses: int):
        """Queue failure statuses for requests whose path ends with key (or host == key)."""
        self.failures.setdefault(key, []).extend(statuses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for key in (self.method_of(request), request.url.host):
            queued = self.failures.get(key)
            if queued:
                return httpx.Response(queued.pop(0), json={"ok": False})
        return httpx.Response(200, json={"ok": True})

    @staticmethod
    def method_of(request: httpx.Request) -> str:
        return request.url.path.rsplit("/", 1)[-1]

    def bot_methods(self) -> list[str]:
        return [self.method_of(r) for r in self.requests if r.url.host == "bot.example.com"]

    def webhook_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == "hooks.example.com"]


def field_names(request: httpx.Request) -> list[str]:
    return [m.decode() for m in re.findall(rb'; name="([^"]+)"', request.content)]


def field_value(request: httpx.Request, name: str) -> str:
    # Optional part headers (e.g. Content-Type) sit between the name and the value
    pattern = rb'; name="' + name.encode() + rb'"\r\n(?:[^\r\n]+\r\n)*\r\n(.*?)\r\n--'
    match = re.search(pattern, request.content, re.S)
    assert match, f"field {name} not in request"
    return match.group(1).decode()


def payload_json(request: httpx.Request) -> dict:
    return json.loads(field_value(request, "payload_json"))


def make_file(name: str, mime: str, data: bytes = b"x") -> Attachment:
    return Attachment(data=data, mime_type=mime, filename=name)


def images(count: int) -> tuple[Attachment, ...]:
    return tuple(make_file(f"img{i}.png", "image/png") for i in range(count))


def both_enabled(**overrides) -> dict[Destination, DestinationConfig]:
    return {
        Destination.WEBHOOK: DestinationConfig(
            WebhookCredentials(url=overrides.get("webhook_url", WEBHOOK_URL))
        ),
        Destination.BOT: DestinationConfig(
            BotCredentials(
                token=overrides.get("bot_token", BOT_TOKEN),
                chat_id=overrides.get("chat_id", CHAT_ID),
            )
        ),
    }


@pytest.fixture
def spy() -> BackendSpy:
    return BackendSpy()


@pytest.fixture
async def http(spy):
    async with httpx.AsyncClient(transport=httpx.MockTransport(spy.handler)) as client:
        yield client
