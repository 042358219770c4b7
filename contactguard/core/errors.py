"""Exception hierarchy for the content risk pipeline.

Detection and scoring never raise on string input.  Only escalation can
fail, and only the conversation lookup that opens it is fatal; every later
step is caught and reported in the outcome instead.
"""
from __future__ import annotations


class ContactGuardError(Exception):
    """Base class for every error raised by this package."""


class EscalationError(ContactGuardError):
    """Escalation could not start; nothing was written."""

    def __init__(self, conversation_id: str, message: str) -> None:
        super().__init__(message)
        self.conversation_id = conversation_id


class ConversationNotFoundError(EscalationError, KeyError):
    """The conversation disappeared before escalation could read it."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(conversation_id, f"Conversation {conversation_id} not found")

    def __str__(self) -> str:
        return self.args[0]


class EscalationAbortedError(EscalationError):
    """The conversation lookup failed for a reason other than not-found."""
