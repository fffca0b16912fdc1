"""Custom exceptions for the Comanda application."""


class ComandaError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="Ocurrió un error interno", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class ValidationError(ComandaError):
    """Missing or malformed input (name, price, quantity...)."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class NotFoundError(ComandaError):
    """Exception raised when a resource is not found (or belongs to another restaurant)."""
    def __init__(self, message="Recurso no encontrado", payload=None):
        super().__init__(message, 404, payload)


class ConflictError(ComandaError):
    """Illegal state transition or a delete blocked by references."""
    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)


class UnauthorizedError(ComandaError):
    """Raised when the request carries no valid session principal."""
    def __init__(self, message="No autorizado"):
        super().__init__(message, 401)


class ForbiddenError(UnauthorizedError):
    """Raised when the principal lacks the role required for an action."""
    def __init__(self, message="No tienes permisos para realizar esta acción"):
        super().__init__(message)
        self.status_code = 403


class InternalError(ComandaError):
    """Storage or transaction failure. The message never carries storage detail."""
    def __init__(self, message="Error interno del servidor"):
        super().__init__(message, 500)
