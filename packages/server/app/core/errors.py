"""
Typed errors raised by services and converted to JSON at the API boundary.

Every error renders as ``{"ok": false, "error": <message>, "detail": ...}``
with the status code carried by its class. Redirect-terminated flows catch
these themselves and turn the message into a front-end query parameter.
"""

from __future__ import annotations

from typing import Any, Optional


class GestTeamError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    error_code = "INTERNAL_ERROR"
    message = "Unexpected error"

    def __init__(self, message: Optional[str] = None, *, detail: Any = None):
        self.message = message or self.message
        self.detail = detail
        super().__init__(self.message)

    def payload(self, *, detail: Any = None) -> dict[str, Any]:
        body: dict[str, Any] = {"ok": False, "error": self.message, "code": self.error_code}
        detail = self.detail if detail is None else detail
        if detail is not None:
            body["detail"] = detail
        return body


class InvalidToken(GestTeamError):
    """Signature, expiry or format failure. Never shown to users as-is."""

    status_code = 401
    error_code = "INVALID_TOKEN"
    message = "Invalid or expired token"


class Unauthenticated(GestTeamError):
    status_code = 401
    error_code = "UNAUTHENTICATED"
    message = "Not authenticated"


class LinkDenied(GestTeamError):
    status_code = 400
    error_code = "LINK_DENIED"
    message = "Could not link account"


class DomainNotAllowed(GestTeamError):
    status_code = 403
    error_code = "DOMAIN_NOT_ALLOWED"
    message = "GitHub account email is not in the institutional domain"


class InstallationFetchError(GestTeamError):
    status_code = 502
    error_code = "INSTALLATION_FETCH_ERROR"
    message = (
        "GitHub App 401: check GT_GITHUB_APP_ID, the private key "
        "and that the correct App was installed"
    )


class NotFound(GestTeamError):
    status_code = 404
    error_code = "NOT_FOUND"
    message = "Not found"


class Forbidden(GestTeamError):
    status_code = 403
    error_code = "FORBIDDEN"
    message = "Forbidden"


class AppNotInstalled(GestTeamError):
    status_code = 400
    error_code = "APP_NOT_INSTALLED"
    message = "Install the GitHub App first"


class MissingInstitutionalLink(GestTeamError):
    status_code = 400
    error_code = "MISSING_INSTITUTIONAL_LINK"
    message = "Link your INSTITUTIONAL GitHub account first"


class MissingPersonalLink(GestTeamError):
    status_code = 400
    error_code = "MISSING_PERSONAL_LINK"
    message = "Link your PERSONAL GitHub account first"


class ProviderAPIError(GestTeamError):
    """Opaque upstream failure; the provider's message is kept for diagnostics."""

    status_code = 502
    error_code = "PROVIDER_API_ERROR"
    message = "GitHub API error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status: Optional[int] = None,
        detail: Any = None,
    ):
        self.status = status
        super().__init__(message, detail=detail)


class ValidationFailed(GestTeamError):
    status_code = 400
    error_code = "VALIDATION_FAILED"
    message = "Invalid request"


class Conflict(GestTeamError):
    status_code = 409
    error_code = "CONFLICT"
    message = "Resource already exists"
