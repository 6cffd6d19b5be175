from typing import Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.detail:
            body["error"] = self.detail
        return body


class ValidationError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class AuthError(AppError):
    status_code = 401


class ForbiddenError(AppError):
    status_code = 403


class ConfigError(AppError):
    status_code = 500


class UnknownError(AppError):
    """Unexpected store/runtime failure. Admin batch endpoints attach the traceback."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[str] = None, trace: Optional[str] = None):
        super().__init__(message, detail)
        self.trace = trace

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.trace:
            body["trace"] = self.trace
        return body
