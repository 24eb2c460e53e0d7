STALE_SESSION = (
    "Your user session is not valid for the current database. "
    "Please sign out and sign in again."
)

class InventarioAPIError(Exception):
    status_code = 500

class ValidationError(InventarioAPIError):
    status_code = 400

class AuthorizationError(InventarioAPIError):
    status_code = 403

class NotFoundError(InventarioAPIError):
    status_code = 404

class ConflictError(InventarioAPIError):
    status_code = 409

class InternalError(InventarioAPIError):
    status_code = 500

class StaleSessionError(AuthorizationError): pass

class PrestamoNotFoundError(NotFoundError): pass

class DetalleNotFoundError(NotFoundError): pass

class ItemNotFoundError(NotFoundError): pass

class PiezaNotFoundError(NotFoundError): pass

class StockUnavailableError(ConflictError): pass

class AssetNotLendableError(ConflictError): pass

class DatabaseInsertError(InternalError): pass

class AvailabilityIntegrityError(InternalError): pass

class ImmutableRecordError(InternalError): pass
