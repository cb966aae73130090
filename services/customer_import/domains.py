"""
Domain derivation for customer rows.

Turns a validated CsvRow into a CustomerRecord whose domains are canonical:
lowercase, no protocol, no "www.", no surrounding slashes, at least one dot,
and every label 1-63 alphanumeric characters with inner hyphens only.

Three strategies exist; exactly one is active per import:
- email:    the part after "@" in the email address. Rows whose only
            domain is on the exclusion list (shared mail providers) fail.
- website:  the cleaned website column.
- combined: the email domain followed by the website domain. Excluded
            domains are skipped; a non-empty website must be valid.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple, Union

from .schemas import CsvRow

DOMAIN_PATTERN = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?"
    r"(\.[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?)*$"
)

PROTOCOL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)
WWW_PATTERN = re.compile(r"^www\.", re.IGNORECASE)

DEFAULT_EXCLUDED_DOMAINS = ("t-online.de",)


class DomainStrategy(str, Enum):
    """Which column the customer's domains are taken from."""
    EMAIL = "email"
    WEBSITE = "website"
    COMBINED = "combined"


@dataclass(frozen=True)
class CustomerRecord:
    """A customer ready to be reconciled against Linear."""
    id: str
    name: str
    domains: Tuple[str, ...]
    child_count: Optional[int] = None


@dataclass(frozen=True)
class InvalidDomainError:
    """No usable domain could be derived from a row."""
    domain: str
    row: CsvRow
    customer_name: str

    kind = "domain"

    @property
    def message(self) -> str:
        if not self.domain:
            return f"No valid domain found for customer '{self.customer_name}'"
        return f"Invalid domain '{self.domain}' for customer '{self.customer_name}'"


def is_valid_domain(domain: str) -> bool:
    """Check that a domain is non-empty, dotted and syntactically valid."""
    return bool(domain) and "." in domain and DOMAIN_PATTERN.match(domain) is not None


def normalize_website(website: str) -> str:
    """
    Reduce a website value to its bare host name.

    Examples:
        >>> normalize_website("https://WWW.Example.com/")
        'example.com'
        >>> normalize_website("example.com/")
        'example.com'
    """
    value = website.strip()
    value = PROTOCOL_PATTERN.sub("", value)
    value = WWW_PATTERN.sub("", value)
    return value.strip("/").lower()


def extract_email_domain(email: str) -> str:
    """Return the lowercased part after "@" (empty when there is none)."""
    _, _, domain = email.partition("@")
    return domain.strip().lower()


def _unique(domains: Iterable[str]) -> Tuple[str, ...]:
    # dict keeps first-appearance order
    return tuple(dict.fromkeys(domains))


def customer_identity(row: CsvRow) -> str:
    """External id when the row has one, otherwise the customer name."""
    return row.external_id or row.customer_name


@dataclass
class DomainExtractor:
    """
    Builds CustomerRecords from validated rows using one domain strategy.

    Args:
        strategy: Active DomainStrategy
        excluded_domains: Domains that never identify a customer on their own
    """
    strategy: DomainStrategy = DomainStrategy.EMAIL
    excluded_domains: Tuple[str, ...] = DEFAULT_EXCLUDED_DOMAINS

    def __post_init__(self):
        self.strategy = DomainStrategy(self.strategy)
        self.excluded_domains = tuple(d.strip().lower() for d in self.excluded_domains)

    def is_excluded(self, domain: str) -> bool:
        return domain in self.excluded_domains

    def parse_customer(self, row: CsvRow) -> Union[CustomerRecord, InvalidDomainError]:
        """
        Derive the customer's domains and build a CustomerRecord.

        Returns:
            CustomerRecord, or InvalidDomainError naming the first domain
            that could not be used
        """
        if self.strategy is DomainStrategy.EMAIL:
            result = self._from_email(row)
        elif self.strategy is DomainStrategy.WEBSITE:
            result = self._from_website(row)
        else:
            result = self._combined(row)

        if isinstance(result, InvalidDomainError):
            return result

        return CustomerRecord(
            id=customer_identity(row),
            name=row.customer_name,
            domains=_unique(result),
            child_count=row.child_count,
        )

    def _error(self, row: CsvRow, domain: str) -> InvalidDomainError:
        return InvalidDomainError(domain=domain, row=row, customer_name=row.customer_name)

    def _from_email(self, row: CsvRow) -> Union[List[str], InvalidDomainError]:
        domain = extract_email_domain(row.email)
        if not is_valid_domain(domain) or self.is_excluded(domain):
            return self._error(row, domain)
        return [domain]

    def _from_website(self, row: CsvRow) -> Union[List[str], InvalidDomainError]:
        domain = normalize_website(row.website)
        if not is_valid_domain(domain) or self.is_excluded(domain):
            return self._error(row, domain)
        return [domain]

    def _combined(self, row: CsvRow) -> Union[List[str], InvalidDomainError]:
        domains = []

        email_domain = extract_email_domain(row.email)
        if not self.is_excluded(email_domain):
            if not is_valid_domain(email_domain):
                return self._error(row, email_domain)
            domains.append(email_domain)

        if row.website.strip():
            website_domain = normalize_website(row.website)
            if not is_valid_domain(website_domain):
                return self._error(row, website_domain)
            if not self.is_excluded(website_domain):
                domains.append(website_domain)

        if not domains:
            return self._error(row, email_domain)
        return domains
