"""Exception types raised by rtmbot."""


class RtmBotError(Exception):
    """Base class for all rtmbot errors."""


class FatalSessionError(RtmBotError):
    """An error the session cannot recover from. Ends the receive loop."""


class BootstrapError(FatalSessionError):
    """The session-resolution call failed or was rejected."""


class HandshakeError(FatalSessionError):
    """The realtime transport could not be opened."""


class TransportError(FatalSessionError):
    """Reading from or writing to the realtime transport failed."""


class MalformedFrameError(FatalSessionError):
    """An inbound frame could not be parsed as a message envelope."""


class PatternError(RtmBotError, ValueError):
    """An action pattern is not a valid regular expression."""

    def __init__(self, pattern: str, reason: str):
        super().__init__(f"ERROR compiling regexp: {pattern}\n\t{reason}")
        self.pattern = pattern


class DeliveryError(RtmBotError):
    """An outgoing message could not be delivered."""
