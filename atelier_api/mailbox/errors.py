"""Error taxonomy of the mailbox integration.

Every failure the mailbox component can report is a :class:`MailboxError`
subclass with a stable ``code``. :class:`~atelier_api.mailbox.service.MailboxService`
converts them into ``{"success": false, "error": code}`` results at the
component boundary; raw provider or database exceptions never escape it.
"""

from __future__ import annotations


class MailboxError(Exception):
    """Base class for mailbox failures."""

    code: str = "MailboxError"
    detail: str = "Mailbox operation failed"

    def __init__(self, detail: str | None = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class NotAuthenticated(MailboxError):
    code = "NotAuthenticated"
    detail = "Not authenticated"


class NotConnected(MailboxError):
    code = "NotConnected"
    detail = "Gmail not connected"


class ProjectNotFound(MailboxError):
    code = "ProjectNotFound"
    detail = "Project not found"


class RefreshFailed(MailboxError):
    code = "RefreshFailed"
    detail = "Gmail connection broken, please reconnect"


class FetchFailed(MailboxError):
    code = "FetchFailed"
    detail = "Failed to fetch emails"


class AuthorizationFailed(MailboxError):
    """The OAuth handshake did not yield a usable credential."""

    code = "AuthorizationFailed"
    detail = "Gmail authorization failed"

    def __init__(self, reason: str, detail: str | None = None) -> None:
        self.reason = reason
        super().__init__(detail)


class StorageFailed(MailboxError):
    """The credential row could not be read or written."""

    code = "StorageFailed"
    detail = "Mailbox storage unavailable"
