from fastapi import HTTPException, status

class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

class AuthorizationError(HTTPException):
    def __init__(self, detail: str = "Access denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )

class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )

class ValidationFailed(HTTPException):
    def __init__(self, detail: str = "Invalid data"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

class SchedulingConflictError(ValidationFailed):
    """The requested slot overlaps a booked appointment."""

    def __init__(self, detail: str = "This time slot is not available"):
        super().__init__(detail)

class AccountLockedError(HTTPException):
    def __init__(self, detail: str = "Account is temporarily locked"):
        super().__init__(
            status_code=status.HTTP_423_LOCKED,
            detail=detail,
        )

class RateLimitError(HTTPException):
    def __init__(self, detail: str = "Too many requests. Please try again later."):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
        )
