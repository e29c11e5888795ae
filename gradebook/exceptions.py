"""
Errors raised by the gradebook analytics engine.

NotFound and InvariantViolation are normally absorbed by the engine
(logged, or carried on a Report); DataUnavailable, RenderError and
ReportCancelled always propagate to the caller.
"""


class ReportError(Exception):
    """Base class for analytics engine errors."""


class NotFound(ReportError):
    """Requested student, subject or enrollment does not exist."""

    def __init__(self, kind, identifier):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} not found")


class InvariantViolation(ReportError):
    """A stored row breaks a data-model invariant and was dropped."""

    def __init__(self, message, row=None):
        self.row = row
        super().__init__(message)


class DataUnavailable(ReportError):
    """The data gateway failed to answer a read."""


class RenderError(ReportError):
    """Writing a rendered report to its sink failed."""


class ReportCancelled(ReportError):
    """The host cancelled the request before the report was complete."""
