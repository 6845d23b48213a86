"""
Core data model shared by the adapters, the status tracker and the coordinator.

Message, Attachment and the destination configs are frozen: they are captured
once per send and never mutated afterwards. SendResult is a per-send view
built from the status tracker.
"""

import enum
from dataclasses import dataclass, field


class Destination(str, enum.Enum):
    WEBHOOK = "webhook"
    BOT = "bot"


class DeliveryOutcome(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"  # destination not selected for this send


class SendStatus(str, enum.Enum):
    FULL_SUCCESS = "full_success"
    PARTIAL_SUCCESS = "partial_success"
    FULL_FAILURE = "full_failure"


@dataclass(frozen=True)
class Attachment:
    data: bytes
    mime_type: str
    filename: str

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def is_groupable(self) -> bool:
        """Images and videos can be bundled into a single media-group call."""
        return self.mime_type.startswith(("image/", "video/"))


@dataclass(frozen=True)
class RichEmbed:
    title: str = ""
    description: str = ""
    color: int | None = None

    @property
    def is_populated(self) -> bool:
        return bool(self.title or self.description)

    def as_text(self) -> str:
        """Plain-text rendering for destinations without native embeds."""
        parts = []
        if self.title:
            parts.append(f"*{self.title}*")
        if self.description:
            parts.append(self.description)
        return "\n".join(parts)


@dataclass(frozen=True)
class Message:
    text: str = ""
    attachments: tuple[Attachment, ...] = ()
    embed: RichEmbed | None = None

    @property
    def has_content(self) -> bool:
        return bool(
            self.text
            or self.attachments
            or (self.embed is not None and self.embed.is_populated)
        )


@dataclass(frozen=True)
class WebhookCredentials:
    url: str = ""

    def missing_fields(self) -> list[str]:
        return [] if self.url.strip() else ["url"]


@dataclass(frozen=True)
class BotCredentials:
    token: str = ""
    chat_id: str = ""

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.token.strip():
            missing.append("token")
        if not self.chat_id.strip():
            missing.append("chat_id")
        return missing


Credentials = WebhookCredentials | BotCredentials


@dataclass(frozen=True)
class DestinationConfig:
    credentials: Credentials
    enabled: bool = True


@dataclass
class SendResult:
    outcomes: dict[Destination, DeliveryOutcome]
    errors: dict[Destination, str] = field(default_factory=dict)
    dispatched: bool = True

    @property
    def enabled(self) -> list[Destination]:
        return [d for d, o in self.outcomes.items() if o != DeliveryOutcome.SKIPPED]

    @property
    def succeeded(self) -> list[Destination]:
        return [d for d, o in self.outcomes.items() if o == DeliveryOutcome.SUCCESS]

    @property
    def status(self) -> SendStatus | None:
        """Aggregate classification; None while pending or when nothing was sent."""
        enabled = [self.outcomes[d] for d in self.enabled]
        if not self.dispatched or not enabled or DeliveryOutcome.PENDING in enabled:
            return None
        if all(o == DeliveryOutcome.SUCCESS for o in enabled):
            return SendStatus.FULL_SUCCESS
        if all(o == DeliveryOutcome.ERROR for o in enabled):
            return SendStatus.FULL_FAILURE
        return SendStatus.PARTIAL_SUCCESS
