"""
Async HTTPX client for the Linear GraphQL API (customers only).

Handles authentication, error classification and structured logging.
Requests are not retried: a failed call surfaces as a typed error and the
caller decides what to do with it.
"""

import time
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from .errors import (
    CreateCustomerError,
    FindCustomerError,
    InvalidCustomerIdError,
    LinearAPIError,
    LinearAuthenticationError,
    LinearForbiddenError,
    LinearInternalError,
    LinearInvalidInputError,
    LinearRateLimitError,
    ListCustomersError,
    UpdateCustomerError,
)
from .log_config import get_logger, log_api_call
from .schemas import CustomerPayload, RemoteCustomer

logger = get_logger(__name__)

DEFAULT_API_URL = "https://api.linear.app/graphql"

CUSTOMER_FIELDS = "id name domains externalIds size"

LIST_CUSTOMERS_QUERY = f"""
query Customers($first: Int) {{
  customers(first: $first) {{
    nodes {{ {CUSTOMER_FIELDS} }}
  }}
}}
"""

FIND_CUSTOMER_QUERY = f"""
query Customer($id: String!) {{
  customer(id: $id) {{ {CUSTOMER_FIELDS} }}
}}
"""

CREATE_CUSTOMER_MUTATION = f"""
mutation CustomerCreate($input: CustomerCreateInput!) {{
  customerCreate(input: $input) {{
    success
    customer {{ {CUSTOMER_FIELDS} }}
  }}
}}
"""

UPDATE_CUSTOMER_MUTATION = f"""
mutation CustomerUpdate($id: String!, $input: CustomerUpdateInput!) {{
  customerUpdate(id: $id, input: $input) {{
    success
    customer {{ {CUSTOMER_FIELDS} }}
  }}
}}
"""


def _int_header(headers: httpx.Headers, name: str) -> Optional[int]:
    value = headers.get(name)
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def classify_error(
    message: str,
    *,
    error_type: str = "",
    status_code: Optional[int] = None,
    headers: Optional[httpx.Headers] = None,
    operation: Optional[str] = None,
    variables: Optional[Dict[str, Any]] = None,
) -> LinearAPIError:
    """
    Map a failed response to a LinearAPIError subclass.

    Linear reports GraphQL errors with an ``extensions.type`` such as
    "authentication error", "forbidden", "feature not accessible",
    "invalid input" or "ratelimited"; plain HTTP status codes are used
    when no GraphQL error type is available.
    """
    kind = error_type.lower()
    context = {
        "error_type": kind or "unknown",
        "status_code": status_code,
        "operation": operation,
        "variables": variables,
    }

    if "authentication" in kind or status_code == 401:
        return LinearAuthenticationError(message, **context)

    if "forbidden" in kind or "feature not accessible" in kind or status_code == 403:
        return LinearForbiddenError(message, **context)

    if "ratelimit" in kind or status_code == 429:
        headers = headers or httpx.Headers()
        return LinearRateLimitError(
            message,
            retry_after=_int_header(headers, "Retry-After"),
            requests_limit=_int_header(headers, "X-RateLimit-Requests-Limit"),
            requests_remaining=_int_header(headers, "X-RateLimit-Requests-Remaining"),
            requests_reset_at=_int_header(headers, "X-RateLimit-Requests-Reset"),
            **context,
        )

    if "invalid input" in kind or status_code == 400:
        return LinearInvalidInputError(message, **context)

    return LinearInternalError(message, **context)


def _parse_customer(node: Any, operation: str) -> RemoteCustomer:
    """Validate one customer node; a malformed node becomes a LinearInternalError."""
    try:
        return RemoteCustomer.model_validate(node)
    except ValidationError as e:
        raise LinearInternalError(
            f"Malformed customer in Linear response: {e}",
            error_type="invalid response",
            operation=operation,
        ) from e


class LinearClient:
    """
    Linear customers API client.

    Use as an async context manager:

        async with LinearClient(api_key) as client:
            customers = await client.list_customers()

    Args:
        api_key: Linear personal API key
        api_url: GraphQL endpoint
        timeout: Request timeout in seconds
        list_limit: Page size of the single customers listing
        **client_kwargs: Additional arguments for httpx.AsyncClient
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        list_limit: int = 250,
        **client_kwargs
    ):
        self.api_url = api_url
        self.list_limit = list_limit

        client_kwargs.setdefault("timeout", timeout)
        client_kwargs.setdefault("headers", {
            "Authorization": api_key,
            "Accept": "application/json",
            "Content-Type": "application/json",
        })
        self._client = httpx.AsyncClient(**client_kwargs)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def execute(
        self,
        operation: str,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Run one GraphQL document and return its ``data`` object.

        Raises:
            LinearAPIError: Any transport, HTTP or GraphQL failure
        """
        variables = variables or {}
        body = {"operationName": operation, "query": query, "variables": variables}
        start_time = time.monotonic()

        try:
            response = await self._client.post(self.api_url, json=body)
        except httpx.HTTPError as e:
            logger.error(
                "Linear request failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise LinearInternalError(
                f"Request to Linear failed: {e}",
                error_type="network error",
                operation=operation,
                variables=variables,
            ) from e

        log_api_call(
            logger,
            method="POST",
            operation=operation,
            status_code=response.status_code,
            duration_ms=(time.monotonic() - start_time) * 1000,
        )

        try:
            payload = response.json()
        except ValueError:
            payload = None

        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            first = errors[0] if isinstance(errors[0], dict) else {}
            extensions = first.get("extensions") or {}
            message = (
                extensions.get("userPresentableMessage")
                or first.get("message")
                or "Unknown GraphQL error"
            )
            raise classify_error(
                message,
                error_type=str(extensions.get("type") or extensions.get("code") or ""),
                status_code=response.status_code,
                headers=response.headers,
                operation=operation,
                variables=variables,
            )

        if response.status_code >= 400:
            raise classify_error(
                f"HTTP {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
                headers=response.headers,
                operation=operation,
                variables=variables,
            )

        if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
            raise LinearInternalError(
                f"Invalid response from Linear: {response.text[:500]}",
                status_code=response.status_code,
                operation=operation,
                variables=variables,
            )

        return payload["data"]

    async def list_customers(self) -> List[RemoteCustomer]:
        """
        Fetch all existing customers with a single listing query.

        Raises:
            ListCustomersError: When the listing fails or returns a malformed customer
        """
        try:
            data = await self.execute("Customers", LIST_CUSTOMERS_QUERY, {"first": self.list_limit})
            nodes = (data.get("customers") or {}).get("nodes") or []
            customers = [_parse_customer(node, "Customers") for node in nodes]
        except LinearAPIError as e:
            raise ListCustomersError(e) from e

        logger.debug("Listed Linear customers", count=len(customers))
        return customers

    async def find_customer(self, customer_id: str) -> RemoteCustomer:
        """
        Fetch one customer by id.

        Raises:
            FindCustomerError: When the lookup fails or the customer is missing
        """
        try:
            data = await self.execute("Customer", FIND_CUSTOMER_QUERY, {"id": customer_id})
            node = data.get("customer")
            if not node:
                raise LinearInternalError(f"Customer {customer_id} not found", operation="Customer")
            return _parse_customer(node, "Customer")
        except LinearAPIError as e:
            raise FindCustomerError(customer_id, e) from e

    async def create_customer(self, payload: CustomerPayload) -> RemoteCustomer:
        """
        Create a customer and return it as stored by Linear.

        Raises:
            CreateCustomerError: When the mutation fails or returns a malformed customer
            InvalidCustomerIdError: When Linear returns no customer id
        """
        try:
            data = await self.execute(
                "CustomerCreate",
                CREATE_CUSTOMER_MUTATION,
                {"input": payload.to_create_input()},
            )
        except LinearAPIError as e:
            raise CreateCustomerError(payload, e) from e

        node = (data.get("customerCreate") or {}).get("customer") or {}
        if not node.get("id"):
            raise InvalidCustomerIdError("create", payload)

        try:
            customer = _parse_customer(node, "CustomerCreate")
        except LinearAPIError as e:
            raise CreateCustomerError(payload, e) from e

        logger.debug("Created Linear customer", customer_id=customer.id, name=customer.name)
        return customer

    async def update_customer(self, customer_id: str, payload: CustomerPayload) -> RemoteCustomer:
        """
        Update a customer and return it as stored by Linear.

        Raises:
            UpdateCustomerError: When the mutation fails or returns a malformed customer
            InvalidCustomerIdError: When Linear returns no customer id
        """
        try:
            data = await self.execute(
                "CustomerUpdate",
                UPDATE_CUSTOMER_MUTATION,
                {"id": customer_id, "input": payload.to_update_input()},
            )
        except LinearAPIError as e:
            raise UpdateCustomerError(customer_id, payload, e) from e

        node = (data.get("customerUpdate") or {}).get("customer") or {}
        if not node.get("id"):
            raise InvalidCustomerIdError("update", payload)

        try:
            customer = _parse_customer(node, "CustomerUpdate")
        except LinearAPIError as e:
            raise UpdateCustomerError(customer_id, payload, e) from e

        logger.debug("Updated Linear customer", customer_id=customer.id, name=customer.name)
        return customer
