"""Error taxonomy shared by the solve pipeline and the session controller."""

from __future__ import annotations


class AssistantError(Exception):
    """Base class for failures that are turned into status text."""

    status_message = "Something went wrong."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.status_message)
        self.message = message or self.status_message


class TransportError(AssistantError):
    """Network or connectivity failure talking to the solve/speech service."""

    status_message = "Could not reach the answer service."


class ParseError(AssistantError):
    """A reply was received but did not match the questions schema."""

    status_message = "The answer service returned an unreadable reply."

    def __init__(self, message: str | None = None, *, raw_reply: str = "") -> None:
        super().__init__(message)
        self.raw_reply = raw_reply


class PermissionDenied(AssistantError):
    """Photo library access is not available."""

    status_message = "Photo access is required. Allow read access to the glasses sync folder."


class EmptyInput(AssistantError):
    """No usable text or image was provided."""

    status_message = "No usable text found in image."
