class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class InsufficientStockError(AppError):
    """Raised when a sale asks for more units than are in stock."""


class AuthorizationError(AppError):
    pass
