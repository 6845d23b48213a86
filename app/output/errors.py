"""Delivery error taxonomy. All of these are converted to ERROR outcomes by the coordinator."""


class DeliveryError(Exception):
    """Base class for a destination that could not be delivered to."""


class MissingCredentialError(DeliveryError):
    def __init__(self, destination: str, fields: list[str]):
        self.destination = destination
        self.fields = fields
        super().__init__(f"Missing credentials for {destination}: {', '.join(fields)}")


class TransportError(DeliveryError):
    def __init__(self, status_code: int, method: str = ""):
        self.status_code = status_code
        self.method = method
        label = f"{method} " if method else ""
        super().__init__(f"{label}failed with HTTP {status_code}")


class FallbackExhaustedError(DeliveryError):
    def __init__(self, method: str, status_code: int, fallback_status_code: int):
        self.method = method
        self.status_code = status_code
        self.fallback_status_code = fallback_status_code
        super().__init__(
            f"{method} failed with HTTP {status_code}, "
            f"sendDocument fallback failed with HTTP {fallback_status_code}"
        )


class InvalidTransitionError(Exception):
    """Raised by the status tracker for a transition the state machine forbids."""
