"""
Exceptions raised by the dashboard layer.

Query failures are logged and turned into user-facing messages by the
stores; the classes below cover the failures that reach callers.
"""


class DashboardError(Exception):
    """Base exception for all dashboard errors."""

    pass


class InvalidStatusError(DashboardError, ValueError):
    """Raised when an order status is not one of the known values."""

    def __init__(self, status):
        self.status = status
        super().__init__(f"Unknown order status: {status!r}")


class OrderUpdateError(DashboardError):
    """Raised when the remote status update of an order fails."""

    def __init__(self, order_id: str, original_error: Exception | None = None):
        self.order_id = order_id
        self.original_error = original_error

        message = f"Failed to update order '{order_id}'"
        if original_error:
            message = f"{message} (Original error: {original_error})"

        super().__init__(message)


class AuthenticationError(DashboardError):
    """Raised when sign-in fails; `code` is the provider's error code."""

    def __init__(self, message: str, code: str = ""):
        self.code = code
        super().__init__(message)


class ProfileNotFoundError(AuthenticationError):
    """Raised when a signed-in account has no profile document."""

    def __init__(self, uid: str, collection: str):
        self.uid = uid
        self.collection = collection
        label = "Customer" if collection == "customers" else "User"
        super().__init__(f"{label} not found in database", code="PROFILE_NOT_FOUND")
