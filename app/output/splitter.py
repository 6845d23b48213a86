from app.output.base import Attachment

OVERFLOW_FILENAME = "full_message.txt"


def overflow_notice(limit: int) -> str:
    return f"⚠️ Message exceeded {limit} characters. Full text attached."


def split(text: str, limit: int) -> tuple[str, Attachment | None]:
    """Fit text into a destination's inline limit.

    Returns the text unchanged when it fits. Otherwise returns a short notice
    as the inline text plus a text/plain attachment carrying the full original.
    """
    if len(text) <= limit:
        return text, None

    notice = overflow_notice(limit)
    overflow = Attachment(
        data=text.encode("utf-8"),
        mime_type="text/plain",
        filename=OVERFLOW_FILENAME,
    )
    return notice[:limit], overflow
