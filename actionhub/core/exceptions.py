"""
Errors raised by services and integrations.

Each class carries the ``ERR_*`` code the API reports for it; the HTTP
status lives next to the codes in ``actionhub.utils.errors``. The browser
client turns codes into localised messages, so codes are stable and
messages are for developers.

    raise NotFoundError("ImprovementAction", action_id)
    raise ValidationError("name is required", details={"name": "required"})
"""


class E:
    """Machine-readable error codes."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    VALIDATION_CONSTRAINT = "ERR_VALIDATION_CONSTRAINT"
    NOT_FOUND = "ERR_NOT_FOUND"
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    FORBIDDEN = "ERR_FORBIDDEN"
    CONFIGURATION = "ERR_CONFIGURATION"
    WORKSPACE_UNAUTHORIZED = "ERR_WORKSPACE_UNAUTHORIZED"
    WORKSPACE_NOT_FOUND = "ERR_WORKSPACE_NOT_FOUND"
    WORKSPACE_UNEXPECTED = "ERR_WORKSPACE_UNEXPECTED"
    INTERNAL = "ERR_INTERNAL"


class ActionHubError(Exception):
    error_code = E.INTERNAL
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message or self.default_message)


class NotFoundError(ActionHubError):
    """Missing record, or one the caller may not read.

    Unreadable actions are reported the same way as missing ones so the
    response does not confirm that they exist.
    """

    error_code = E.NOT_FOUND

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        suffix = f" id={resource_id}" if resource_id is not None else ""
        super().__init__(f"{resource}{suffix} not found")


class ValidationError(ActionHubError):
    error_code = E.VALIDATION_CONSTRAINT


class TransitionError(ValidationError):
    """A workflow transition that the action's status or data does not allow."""

    error_code = E.CONFLICT_STATE

    def __init__(self, code: str, action: str, current: str, reason: str | None = None) -> None:
        self.code = code
        self.action = action
        self.current_status = current
        self.reason = reason
        message = f"Cannot '{action}' action {code} (status={current})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, details={"current_status": current, "transition": action})


class ConflictError(ActionHubError):
    """Duplicate unique key, or a delete blocked by rows that reference the record."""

    error_code = E.CONFLICT_DUPLICATE

    def __init__(self, resource: str, field: str, value: str | None = None, message: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(message or f"{resource} with {field}={value!r} already exists", details={"field": field})


class AuthenticationError(ActionHubError):
    error_code = E.UNAUTHENTICATED
    default_message = "Authentication required"


class ForbiddenError(ActionHubError):
    error_code = E.FORBIDDEN
    default_message = "Permission denied"


class ConfigurationError(ActionHubError):
    """A required setting such as GSUITE_ADMIN_EMAIL is missing or unusable."""

    error_code = E.CONFIGURATION


class WorkspaceError(ActionHubError):
    """Failure talking to the Google Workspace directory.

    ``status_code`` is the upstream HTTP status, or None when the request
    never got a response.
    """

    error_code = E.WORKSPACE_UNEXPECTED

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class WorkspaceAuthorizationError(WorkspaceError):
    """Upstream 403: missing domain-wide delegation or Admin SDK disabled."""

    error_code = E.WORKSPACE_UNAUTHORIZED


class WorkspaceNotFoundError(WorkspaceError):
    error_code = E.WORKSPACE_NOT_FOUND
