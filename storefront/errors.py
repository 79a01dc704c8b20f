from typing import Any, Dict, List, Optional


class StoreError(Exception):
    """Base for errors that map onto an HTTP response."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationFailed(StoreError):
    status_code = 400
    message = "Invalid request"


class Unauthenticated(StoreError):
    status_code = 401
    message = "Unauthenticated"


class InvalidCredentials(Unauthenticated):
    message = "Invalid credentials"


class NotFound(StoreError):
    status_code = 404
    message = "Not found"


# ---------------------------
# Checkout outcomes
# ---------------------------
class CheckoutError(StoreError):
    pass


class EmptyCart(CheckoutError):
    status_code = 400
    message = "Cart is empty"


class InvalidItems(CheckoutError):
    status_code = 400
    message = "No valid items to check out"


class InsufficientStock(CheckoutError):
    status_code = 409
    message = "Insufficient stock"

    def __init__(self, insufficient: List[Dict[str, int]]):
        super().__init__()
        self.insufficient = insufficient

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "insufficient": self.insufficient}


class TransactionFailure(CheckoutError):
    status_code = 500
    message = "Checkout failed, please try again"


# Raised by the storage layer; never leaves it half-applied.
class StorageError(Exception):
    pass
