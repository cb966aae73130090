"""
Reconciliation of parsed customers against existing Linear customers.

Strategy:
- Existing customers are listed once per batch; every match is evaluated
  against that snapshot before any write starts
- A Linear customer whose externalIds contain the record's id wins;
  otherwise the first Linear customer sharing a domain wins
- Matched customers are updated only when name or size differ
- Unmatched customers are created
- Writes run with bounded concurrency; a failed write is recorded and
  never stops the others (no retries)
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .domains import CustomerRecord
from .errors import CustomerOperationError
from .log_config import get_logger
from .schemas import CustomerPayload, RemoteCustomer

logger = get_logger(__name__)

DEFAULT_UPSERT_CONCURRENCY = 10


class UpsertAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    NONE = "none"


@dataclass(frozen=True)
class UpsertPlan:
    """What to do with one customer, decided before any write."""
    customer: CustomerRecord
    action: UpsertAction
    match: Optional[RemoteCustomer] = None
    payload: Optional[CustomerPayload] = None


@dataclass(frozen=True)
class UpsertFailure:
    """A customer whose create/update call failed."""
    customer: CustomerRecord
    action: UpsertAction
    error: CustomerOperationError

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass
class UpsertOutcome:
    """Result of upsert_customers(); customers not in ``failed`` succeeded."""
    failed: List[UpsertFailure] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    unchanged: int = 0


def find_matching_customer(
    customer: CustomerRecord,
    remote_customers: Sequence[RemoteCustomer],
) -> Optional[RemoteCustomer]:
    """
    Find the Linear customer a record belongs to.

    External id matches take priority over domain matches; within each kind
    the first customer in listing order wins.
    """
    for remote in remote_customers:
        if customer.id in remote.external_ids:
            logger.debug(
                "Matched customer by external id",
                customer_id=customer.id,
                linear_id=remote.id,
                linear_name=remote.name,
            )
            return remote

    domains = set(customer.domains)
    for remote in remote_customers:
        if domains.intersection(remote.domains):
            logger.debug(
                "Matched customer by domain",
                customer_id=customer.id,
                linear_id=remote.id,
                linear_name=remote.name,
            )
            return remote

    return None


def needs_update(customer: CustomerRecord, remote: RemoteCustomer) -> bool:
    """True when the stored name or size differs from the record."""
    return remote.size != customer.child_count or remote.name != customer.name


def build_create_payload(customer: CustomerRecord) -> CustomerPayload:
    return CustomerPayload(
        name=customer.name,
        domains=list(customer.domains),
        external_ids=[customer.id],
        size=customer.child_count,
    )


def build_update_payload(customer: CustomerRecord, remote: RemoteCustomer) -> CustomerPayload:
    """Keep the stored domains and external ids; take name and size from the record."""
    return CustomerPayload(
        name=customer.name,
        domains=list(remote.domains),
        external_ids=list(remote.external_ids),
        size=customer.child_count,
    )


def plan_upsert(
    customer: CustomerRecord,
    remote_customers: Sequence[RemoteCustomer],
) -> UpsertPlan:
    """Decide between create, update and no-op for one customer."""
    match = find_matching_customer(customer, remote_customers)

    if match is None:
        return UpsertPlan(
            customer=customer,
            action=UpsertAction.CREATE,
            payload=build_create_payload(customer),
        )

    if needs_update(customer, match):
        return UpsertPlan(
            customer=customer,
            action=UpsertAction.UPDATE,
            match=match,
            payload=build_update_payload(customer, match),
        )

    return UpsertPlan(customer=customer, action=UpsertAction.NONE, match=match)


def shared_matches(plans: Sequence[UpsertPlan]) -> Dict[str, List[str]]:
    """Linear customer ids matched by more than one record, with those records' ids."""
    matched: Dict[str, List[str]] = {}
    for plan in plans:
        if plan.match is not None:
            matched.setdefault(plan.match.id, []).append(plan.customer.id)
    return {linear_id: ids for linear_id, ids in matched.items() if len(ids) > 1}


class CustomerUpserter:
    """
    Creates or updates Linear customers for a parsed batch.

    Args:
        client: Object with async list_customers(), create_customer(payload)
            and update_customer(id, payload), e.g. LinearClient
        concurrency: Maximum number of create/update calls in flight
    """

    def __init__(self, client, concurrency: int = DEFAULT_UPSERT_CONCURRENCY):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.client = client
        self.concurrency = concurrency

    async def upsert_customers(self, customers: Sequence[CustomerRecord]) -> UpsertOutcome:
        """
        Reconcile a batch of customers with Linear.

        Returns:
            UpsertOutcome listing every customer whose write failed

        Raises:
            ListCustomersError: When existing customers cannot be listed;
                nothing is written in that case
        """
        remote_customers = await self.client.list_customers()
        logger.debug("Found existing Linear customers", count=len(remote_customers))

        plans = [plan_upsert(customer, remote_customers) for customer in customers]
        for linear_id, customer_ids in shared_matches(plans).items():
            logger.warning(
                "Linear customer matched by several records",
                linear_id=linear_id,
                customer_ids=customer_ids,
            )

        semaphore = asyncio.Semaphore(self.concurrency)
        failures = await asyncio.gather(*(self._execute(plan, semaphore) for plan in plans))

        outcome = UpsertOutcome(failed=[failure for failure in failures if failure is not None])
        for plan, failure in zip(plans, failures):
            if failure is not None:
                continue
            if plan.action is UpsertAction.CREATE:
                outcome.created += 1
            elif plan.action is UpsertAction.UPDATE:
                outcome.updated += 1
            else:
                outcome.unchanged += 1

        logger.debug(
            "Processed customers",
            customers=len(customers),
            linear_customers=len(remote_customers),
            created=outcome.created,
            updated=outcome.updated,
            unchanged=outcome.unchanged,
            failed=len(outcome.failed),
        )

        return outcome

    async def _execute(self, plan: UpsertPlan, semaphore: asyncio.Semaphore) -> Optional[UpsertFailure]:
        if plan.action is UpsertAction.NONE:
            return None

        async with semaphore:
            try:
                if plan.action is UpsertAction.CREATE:
                    logger.info(
                        "Creating new customer",
                        customer_id=plan.customer.id,
                        name=plan.customer.name,
                        domains=list(plan.customer.domains),
                    )
                    await self.client.create_customer(plan.payload)
                else:
                    logger.info(
                        "Updating existing customer",
                        customer_id=plan.customer.id,
                        linear_id=plan.match.id,
                        name=plan.customer.name,
                    )
                    await self.client.update_customer(plan.match.id, plan.payload)
            except CustomerOperationError as e:
                logger.warning(
                    "Customer upsert failed",
                    customer_id=plan.customer.id,
                    action=plan.action.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return UpsertFailure(customer=plan.customer, action=plan.action, error=e)

        return None
