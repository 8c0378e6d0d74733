class AppError(Exception):
    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(AppError):
    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} '{resource_id}' not found", code="NOT_FOUND")


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED")


class ParseError(AppError):
    """The whole input could not be parsed; no rows are produced."""

    def __init__(self, message: str):
        super().__init__(message, code="PARSE_ERROR")


class TransportError(AppError):
    """A batch call failed as a whole, without a row-level breakdown."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message, code="TRANSPORT_ERROR")


class StorageError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="STORAGE_ERROR")
