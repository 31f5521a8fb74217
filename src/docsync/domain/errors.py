class AppError(Exception):
    """Base app error."""


class ConfigurationError(AppError):
    pass


class ApiError(AppError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(ApiError):
    pass


class TransientApiError(ApiError):
    """Rate limiting, server failure or timeout. Safe to retry."""


class DocumentShapeError(AppError):
    pass


class StorageError(AppError):
    pass
