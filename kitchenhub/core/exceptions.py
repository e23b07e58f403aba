from __future__ import annotations

from typing import Any


class KitchenHubError(Exception):
    """Base class for errors surfaced to API callers.

    Each subclass maps to an HTTP status code. ``content`` is merged into the
    JSON body next to ``detail`` by the exception handler registered in
    ``kitchenhub.main``.
    """

    status_code: int = 400

    def __init__(self, detail: str, content: dict[str, Any] | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.content = content or {}


class ValidationError(KitchenHubError):
    """Malformed request window, misaligned slot or illegal state change."""

    status_code = 400


class NotFoundError(KitchenHubError):
    status_code = 404


class PermissionDeniedError(KitchenHubError):
    status_code = 403


class NotQualifiedError(KitchenHubError):
    """The requester has not cleared the booking gate for the kitchen's location."""

    status_code = 403

    def __init__(self, detail: str, missing_requirements: list[str] | None = None) -> None:
        super().__init__(detail, content={"missing_requirements": list(missing_requirements or [])})
        self.missing_requirements = list(missing_requirements or [])


class CapacityExceededError(KitchenHubError):
    """Slot full, or the request lost a race for the last seat. Callers may retry."""

    status_code = 409


class ConcurrentUpdateError(KitchenHubError):
    status_code = 409


class ConfigurationError(KitchenHubError):
    """Operator data-quality issue, e.g. an open override without hours.

    Schedule resolution logs it and treats the date as closed.
    """

    status_code = 500
