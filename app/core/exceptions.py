class AppError(Exception):
    """Base exception for review/retention automation errors"""
    pass


class InvalidLinkError(AppError):
    """A tracking link that cannot be honoured (tampered, foreign or expired)"""
    pass


class InvalidTokenError(InvalidLinkError):
    """Signature mismatch, malformed token or missing claims"""
    pass


class TokenExpiredError(InvalidLinkError):
    """Token is past its expiry claim"""
    pass


class NotFoundError(AppError):
    """Referenced tenant/customer/program/step no longer exists"""
    pass


class DuplicateServiceTagError(AppError):
    """A retention program with the same service tag already exists for the tenant"""

    def __init__(self, service_tag: str = None):
        self.service_tag = service_tag
        super().__init__(
            "A program with this service tag already exists. Please use a different tag."
        )


class MailerError(AppError):
    """Sending failed. Transient from the scheduler's point of view."""

    def __init__(self, message: str, recipient_rejected: bool = False):
        self.recipient_rejected = recipient_rejected
        super().__init__(message)


class TemplateMissingError(AppError):
    """No stored template for a tenant/type. Callers fall back to defaults."""
    pass


class ValidationError(AppError):
    """Exception for domain validation errors"""
    pass


class CryptoError(AppError):
    """Stored ciphertext could not be decrypted with the current key"""
    pass
