"""
Exceptions raised by the Linear API client.

Two layers:
- LinearAPIError and subclasses classify *why* a request failed
  (authentication, permissions, rate limit, invalid input, anything else).
- CustomerOperationError and subclasses say *which* customer operation
  failed and carry the classified API error as ``error``.
"""

from typing import Any, Dict, Optional


class LinearAPIError(Exception):
    """Base exception for Linear API errors."""

    def __init__(
        self,
        message: str,
        *,
        error_type: str = "unknown",
        status_code: Optional[int] = None,
        operation: Optional[str] = None,
        variables: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.operation = operation
        self.variables = variables


class LinearAuthenticationError(LinearAPIError):
    """API key is invalid, expired or missing (401)."""
    pass


class LinearForbiddenError(LinearAPIError):
    """Key lacks permission, or the feature is not accessible (403)."""
    pass


class LinearInvalidInputError(LinearAPIError):
    """Request contained invalid parameters or malformed data (400)."""
    pass


class LinearRateLimitError(LinearAPIError):
    """Rate limit exceeded (429)."""

    def __init__(
        self,
        message: str,
        *,
        retry_after: Optional[int] = None,
        requests_limit: Optional[int] = None,
        requests_remaining: Optional[int] = None,
        requests_reset_at: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after
        self.requests_limit = requests_limit
        self.requests_remaining = requests_remaining
        self.requests_reset_at = requests_reset_at


class LinearInternalError(LinearAPIError):
    """Unclassified API failure, network error or undecodable response."""
    pass


class CustomerOperationError(Exception):
    """Base exception for failed customer operations."""

    def __init__(self, message: str, error: Optional[LinearAPIError] = None):
        super().__init__(message)
        self.error = error


class ListCustomersError(CustomerOperationError):
    """Listing existing customers failed."""

    def __init__(self, error: LinearAPIError):
        super().__init__(f"Failed to list customers: {error}", error)


class FindCustomerError(CustomerOperationError):
    """Fetching a single customer failed."""

    def __init__(self, customer_id: str, error: LinearAPIError):
        super().__init__(f"Failed to find customer {customer_id}: {error}", error)
        self.customer_id = customer_id


class CreateCustomerError(CustomerOperationError):
    """Creating a customer failed."""

    def __init__(self, payload: Any, error: LinearAPIError):
        super().__init__(f"Failed to create customer: {error}", error)
        self.payload = payload


class UpdateCustomerError(CustomerOperationError):
    """Updating a customer failed."""

    def __init__(self, customer_id: str, payload: Any, error: LinearAPIError):
        super().__init__(f"Failed to update customer {customer_id}: {error}", error)
        self.customer_id = customer_id
        self.payload = payload


class InvalidCustomerIdError(CustomerOperationError):
    """A create/update call succeeded but returned no customer id."""

    def __init__(self, action: str, payload: Any):
        super().__init__(f"Linear returned no customer id after {action}")
        self.action = action
        self.payload = payload
