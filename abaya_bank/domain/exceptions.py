"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationError(DomainException):
    """Identity token missing, malformed or expired"""

    status_code = 401


class PermissionDeniedError(DomainException):
    """Caller is not allowed to act on the resource"""

    status_code = 403


class NotFoundError(DomainException):
    """Requested entity does not exist"""

    status_code = 404


class ConflictError(DomainException):
    """Entity already exists"""

    status_code = 409


class ValidationError(DomainException):
    """Input violates a business rule"""

    pass


class InvalidStateError(DomainException):
    """Entity is not in a state that allows the operation"""

    pass


class InsufficientFundsError(DomainException):
    """Account balance does not cover the debit"""

    pass
