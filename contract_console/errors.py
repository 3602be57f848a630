"""
Error taxonomy shared by the console, the chain client and the price feed.

Only ConfigurationError is fatal. TransportError and RemoteRejection are
reported at the session boundary and the session continues.
"""

from typing import Optional


class ConsoleError(Exception):
    """Base class for every error raised by contract_console"""


class ConfigurationError(ConsoleError):
    """Missing secret/address or malformed interface file; halts startup"""


class TransportError(ConsoleError):
    """Node or feed unreachable, or a response could not be understood"""

    def __init__(self, message: str, action: Optional[str] = None):
        super().__init__(message)
        self.action = action

    def __str__(self) -> str:
        message = super().__str__()
        if self.action:
            return f"{self.action}: {message}"
        return message


class FeedUnreachable(TransportError):
    """Price feed could not be contacted or answered with an HTTP error"""


class FeedMalformed(TransportError):
    """Price feed answered, but not with the expected market rows"""


class RemoteRejection(ConsoleError):
    """The node or the contract refused an action"""

    def __init__(self, action: str, reason: Optional[str] = None):
        self.action = action
        self.reason = reason
        if reason:
            super().__init__(f"{action} rejected: {reason}")
        else:
            super().__init__(f"{action} rejected")
