from __future__ import annotations


class CommonHints:
    CHECK_NETWORK = "Check your network connection."
    CHECK_PERMISSIONS = (
        "Check that you have write permissions to the resources directory."
    )


class WebsnapError(Exception):
    """Base error. ``hint`` is a short, user-facing remediation."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


class ValidationError(WebsnapError):
    pass


class FetchError(WebsnapError):
    """Transport-level failure for a single request."""


class RedirectError(FetchError):
    pass


class ResponseTooLargeError(FetchError):
    pass


class CrawlExhaustedError(WebsnapError):
    pass


class CrawlFailedError(WebsnapError):
    pass


class SnapshotFilesystemError(WebsnapError):
    pass
