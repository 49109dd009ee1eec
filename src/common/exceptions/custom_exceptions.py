"""Custom application-wide exceptions."""


class ApplicationError(Exception):
    """Base class for application-specific errors."""

    def __init__(
        self, message: str = "An application error occurred", original_exception: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.original_exception = original_exception
        self.message = message

    def __str__(self) -> str:
        if self.original_exception:
            return f"{self.message} (Original error: {self.original_exception})"
        return self.message


class APIError(ApplicationError):
    """Exception raised for errors during external API calls."""

    def __init__(
        self,
        message: str = "API call failed",
        original_exception: Exception | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, original_exception)
        self.status_code = status_code
        self.message = f"API Error: {message}"
        if status_code:
            self.message += f" (Status Code: {status_code})"


class DatabaseError(ApplicationError):
    """Exception raised for errors during database operations."""

    def __init__(self, message: str = "Database operation failed", original_exception: Exception | None = None) -> None:
        super().__init__(message, original_exception)
        self.message = f"Database Error: {message}"


class ValidationError(ApplicationError):
    """Malformed command input. Raised before any state is touched."""

    def __init__(self, message: str = "Invalid input", field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class InsufficientStockError(ApplicationError):
    """Requested quantity exceeds what the ledger currently holds."""

    def __init__(self, requested: float, available: float, message: str | None = None) -> None:
        super().__init__(message or f"Insufficient stock available: requested {requested}, available {available}")
        self.requested = requested
        self.available = available


class NotFoundError(ApplicationError):
    """Unknown ledger, lot or listing id."""

    def __init__(self, entity: str, identifier: str) -> None:
        super().__init__(f"{entity} not found: {identifier}")
        self.entity = entity
        self.identifier = identifier


class DuplicateLedgerError(DatabaseError):
    """A ledger for this vendor/product pair already exists."""

    def __init__(self, vendor_id: str, product_id: str, original_exception: Exception | None = None) -> None:
        super().__init__(f"Ledger already exists for vendor {vendor_id}, product {product_id}", original_exception)
        self.vendor_id = vendor_id
        self.product_id = product_id


class OptimisticConflictError(DatabaseError):
    """The stored ledger changed between load and save."""

    def __init__(self, ledger_id: str, expected_version: int) -> None:
        super().__init__(f"Ledger {ledger_id} was modified concurrently (expected version {expected_version})")
        self.ledger_id = ledger_id
        self.expected_version = expected_version
