"""Errors raised by the verification core.

Every error carries a short message that is safe to show to the member who
triggered it; the chat adapter replies with ``str(error)``.
"""

from __future__ import annotations


class VerificationError(Exception):
    """Base class for expected, user-facing verification failures."""


class NotFound(VerificationError):  # noqa: N818
    """A referenced alliance, request or member does not exist."""


class Conflict(VerificationError):  # noqa: N818
    """A request id is already taken within the community."""


class InvalidInput(VerificationError):  # noqa: N818
    """An IGN is out of bounds or an interaction token is malformed."""


class Forbidden(VerificationError):  # noqa: N818
    """The acting member may not perform the operation."""


class ChannelUnavailable(VerificationError):  # noqa: N818
    """The approval channel is missing or does not accept messages."""


class ExternalFailure(VerificationError):  # noqa: N818
    """The chat platform rejected a nickname or role mutation."""
