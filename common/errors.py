"""
Error taxonomy shared by every service.

Each error carries a stable machine ``code`` and a human ``message``; the HTTP
layer renders both as ``{code, message}`` and picks the status from
``http_status``.
"""


class MembershipError(Exception):
    code = "internal_error"
    http_status = 500
    retryable = False

    def __init__(self, message: str = ""):
        self.message = message or self.default_message()
        super().__init__(self.message)

    @classmethod
    def default_message(cls) -> str:
        return cls.code.replace("_", " ")


class UnauthorizedError(MembershipError):
    code = "unauthorized"
    http_status = 403

    @classmethod
    def default_message(cls) -> str:
        return "not authorized"


class InvalidArgumentError(MembershipError):
    code = "invalid_argument"
    http_status = 400


class InsufficientBalanceError(MembershipError):
    code = "insufficient_balance"
    http_status = 400


class AlreadyClaimedTodayError(MembershipError):
    code = "already_claimed_today"
    http_status = 409

    @classmethod
    def default_message(cls) -> str:
        return "Daily reward already claimed for today"


class BlockedAccountError(MembershipError):
    code = "blocked_account"
    http_status = 403

    @classmethod
    def default_message(cls) -> str:
        return "account is blocked"


class NotFoundError(MembershipError):
    code = "not_found"
    http_status = 404


class ServiceUnavailableError(MembershipError):
    code = "service_unavailable"
    http_status = 503
    retryable = True

    @classmethod
    def default_message(cls) -> str:
        return "service temporarily unavailable, please retry"
