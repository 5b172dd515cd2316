"""
Error taxonomy for the request workflow.

User input errors carry the reply that is sent back to the requester.
Configuration integrity errors are operator-facing and never shown in chat.
"""


class DesignDeskError(Exception):
    """Base class for all Design Desk errors."""


class ConfigIntegrityError(DesignDeskError):
    """Raised when persisted or environment configuration is missing or malformed."""


class UserInputError(DesignDeskError):
    """Raised when a command cannot be honoured because of what the user sent."""
    reply = "Something was wrong with that request."

    def __init__(self, message: str = ""):
        super().__init__(message or self.reply)


class MissingRequestText(UserInputError):
    reply = "Please provide a request name."


class ClientNotAssigned(UserInputError):
    reply = "You are not assigned to any client plan."


class MultipleClientsAssigned(UserInputError):
    reply = (
        "You are assigned to more than one client plan. "
        "Ask an admin to remove the extra client role."
    )
