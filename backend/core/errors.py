"""
Error taxonomy for a companion turn.

Only HandlerFailure and PersistenceFailure end a turn. Degraded routing and
action-extraction noise are recovered where they happen and never raised.
"""

from core.types import AgentTag

HANDLER_FAILED = "handler_failed"
PERSISTENCE_FAILED = "persistence_failed"
INTERNAL_ERROR = "internal_error"


class CompanionError(Exception):
    """Base class for errors raised by the orchestration core."""

    code = INTERNAL_ERROR


class HandlerFailure(CompanionError):
    """The dispatched capability handler raised."""

    code = HANDLER_FAILED

    def __init__(self, tag: AgentTag, cause: BaseException):
        self.tag = tag
        self.cause = cause
        super().__init__(f"{tag.value} handler failed: {type(cause).__name__}: {cause}")


class PersistenceFailure(CompanionError):
    """The conversation boundary could not record a finished turn."""

    code = PERSISTENCE_FAILED

    def __init__(self, conversation_id: str, cause: BaseException):
        self.conversation_id = conversation_id
        self.cause = cause
        super().__init__(f"could not persist turn for {conversation_id}: {cause}")


class ConversationNotFound(CompanionError):
    code = "conversation_not_found"

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"conversation {conversation_id} not found")
