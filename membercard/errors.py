class MemberCardError(Exception):
    """Base class for errors surfaced to callers as structured results."""

    kind = "error"
    reason = None

    def __init__(self, message: str = "", reason: str = None, **details):
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.kind, "message": self.message, **self.details}
        if self.reason:
            body["reason"] = self.reason
        return body


class NotFound(MemberCardError):
    kind = "not_found"
    reason = "not_found"


class IdentityNotFound(NotFound):
    reason = "identity_not_found"


class AccountNotFound(NotFound):
    reason = "account_not_found"


class NoMatch(NotFound):
    """Heuristic search produced no candidate accounts."""

    reason = "no_match"


class SessionNotFound(NotFound):
    reason = "session_not_found"


class NotLinkedError(NotFound):
    kind = "not_linked"
    reason = "not_linked"


class Conflict(MemberCardError):
    kind = "conflict"
    reason = "conflict"


class IdentityAlreadyLinked(Conflict):
    reason = "identity_already_linked"


class AccountAlreadyLinked(Conflict):
    reason = "account_already_linked"


class IdentityMismatch(Conflict):
    reason = "identity_mismatch"


class ValidationError(MemberCardError):
    kind = "validation_error"


class Unauthorized(MemberCardError):
    kind = "unauthorized"


class UpstreamUnavailable(MemberCardError):
    """Storage or messaging call failed; the whole operation may be retried."""

    kind = "upstream_unavailable"


class ConfigurationError(MemberCardError):
    kind = "configuration_error"
