# errors.py
"""Application errors. Routes raise these; main.py turns them into responses."""


class LMSError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(LMSError):
    status_code = 400
    default_message = "Invalid request"


class DuplicateIdentity(LMSError):
    status_code = 400
    default_message = "User already exists"


class AuthError(LMSError):
    """Every auth failure looks the same to the caller."""
    status_code = 401
    default_message = "Unauthorized"


class InvalidCredentials(AuthError):
    default_message = "Invalid email or password"


class InvalidSignature(AuthError):
    pass


class ExpiredCredential(AuthError):
    pass


class NotFound(LMSError):
    status_code = 404
    default_message = "Not found"


class PaymentGatewayError(LMSError):
    status_code = 502
    default_message = "Payment gateway error"


class ServerError(LMSError):
    pass
