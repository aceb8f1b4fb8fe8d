"""Exception hierarchy shared by the provider, the orchestrator and the CLI."""


class FjiError(Exception):
    """Base exception for all fji errors."""


class RequestCancelled(FjiError):
    """A newer search superseded this one. Never shown to the user."""


class TransportFailure(FjiError):
    """Network, DNS or timeout failure, or a response body that could not be decoded."""


class RemoteRejection(FjiError):
    """Jira answered with a non-success status code.

    Attributes:
        status_code: HTTP status returned by Jira.
    """

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class EmptyResult(FjiError):
    """The status endpoint returned no statuses for the project."""


class NoActiveDocument(FjiError):
    """An issue link was inserted while no editor was active."""
