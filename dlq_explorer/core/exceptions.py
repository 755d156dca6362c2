"""Error taxonomy shared by the engines and the HTTP layer."""
from __future__ import annotations


class DlqError(Exception):
    """Base class for every error raised by the dead-letter engines."""


class InvalidRequest(DlqError, ValueError):
    """Caller input is missing or malformed; nothing was sent to the broker."""


class InvalidEncoding(DlqError, ValueError):
    """A transport-encoded (base64) field could not be decoded.

    Attributes
    ----------
    field : str
        Name of the offending field.
    published : int | None
        Items already sent when the error aborted a replay batch.
    """

    def __init__(self, field: str, detail: str | None = None) -> None:
        self.field = field
        self.published: int | None = None
        msg = f"Invalid base64 in {field!r}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class BrokerUnavailable(DlqError):
    """A broker metadata or session call failed."""


class BrokerTimeout(BrokerUnavailable):
    """A broker call did not complete in time."""


class OperationCancelled(DlqError):
    """A cancellation request was observed at a suspension point."""


class ReplayCancelled(OperationCancelled):
    """Replay aborted by cancellation.

    Attributes
    ----------
    published : int
        Items acknowledged by the broker before the abort.
    """

    def __init__(self, published: int) -> None:
        self.published = published
        super().__init__(f"Replay cancelled after {published} published item(s)")
