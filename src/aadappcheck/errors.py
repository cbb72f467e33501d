"""Exceptions raised by the Graph client and the login flow."""


class GraphClientError(Exception):
    """Base class for client-side Graph errors."""


class MissingParameterError(GraphClientError, ValueError):
    """A required parameter was not supplied. Raised before any network I/O."""

    def __init__(self, parameter: str, operation_id: str = ""):
        self.parameter = parameter
        self.operation_id = operation_id
        where = f" for {operation_id}" if operation_id else ""
        super().__init__(f"Missing required parameter {parameter!r}{where}")


class UnknownOperationError(GraphClientError, KeyError):
    """The operation id is not part of the endpoint table."""

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        super().__init__(operation_id)

    def __str__(self) -> str:
        return f"Unknown operation {self.operation_id!r}"


class GraphApiError(GraphClientError):
    """The service answered with a status outside 2xx.

    Carries the response and its (parsed or raw) body; callers branch on
    ``status_code`` to tell "not found" from "forbidden" from server errors.
    """

    def __init__(self, response, body=None):
        self.response = response
        self.body = body
        super().__init__(f"Graph API error {response.status_code}: {_summarize(body)}")

    @property
    def status_code(self) -> int:
        return self.response.status_code


class AuthError(Exception):
    """Base class for login problems."""


class StateMismatchError(AuthError):
    """The state returned by the authorization server is not the one we sent."""


class TokenAcquisitionError(AuthError):
    """The authorization server refused to hand out a token."""


class NotLoggedInError(AuthError):
    """No stored session token was found."""


def _summarize(body) -> str:
    if isinstance(body, dict):
        # {"odata.error": {"code": ..., "message": {"value": ...}}}
        error = body.get("odata.error") or body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, dict):
                message = message.get("value")
            return f"{error.get('code', '')} {message or ''}".strip()
    text = "" if body is None else str(body)
    return text[:200]
