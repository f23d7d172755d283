from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from HealthChat.services.flow_pipeline import FlowState


# Base for chat-domain failures; status_code is what the HTTP layer renders
class ChatError(Exception):
    status_code = 500

    def __init__(self, message: str, *, flow_state: Optional["FlowState"] = None):
        super().__init__(message)
        self.message = message
        self.flow_state = flow_state


# Client error raised before any write happens
class ChatValidationError(ChatError):
    status_code = 400


# Missing and not-owned are reported identically so callers can't probe for existence
class NotFoundOrForbidden(ChatError):
    status_code = 404

    def __init__(self, message: str = "Conversation not found or access denied", **kwargs):
        super().__init__(message, **kwargs)


# Store read/write error; earlier writes in the same flow are not rolled back
class PersistenceFailure(ChatError):
    status_code = 500


# Generative provider error or timeout; never leaves ResponseGenerator
class ProviderFailure(ChatError):
    status_code = 502
