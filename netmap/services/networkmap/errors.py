"""Failure kinds raised by the network map pipeline."""


class NetworkMapError(Exception):
    """Base class for network map failures."""


class EntitySourceUnavailable(NetworkMapError):
    """The monitored-entity inventory could not be read."""


class LayoutToolFailure(NetworkMapError):
    """The external layout tool did not produce usable output.

    ``transient`` marks failures worth retrying (timeouts, OS-level errors).
    A missing binary or a nonzero exit status is not transient.
    """

    def __init__(self, message: str, *, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class LayoutParseFailure(LayoutToolFailure):
    """The layout tool output was malformed or incomplete. Never retried."""

    def __init__(self, message: str):
        super().__init__(message, transient=False)


class CustomParserFailure(NetworkMapError):
    """Returned by a custom output parser to hand control back to the caller."""
