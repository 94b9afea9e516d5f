"""Input validation and quota arithmetic shared by checks and commits."""

import re
from decimal import Decimal, InvalidOperation

from .errors import InvalidArgument
from .models import Decision, QuotaDimension, QuotaLimits, RejectionReason

# Ethereum address pattern: 0x followed by 40 hex characters
ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def normalize_address(field: str, value) -> str:
    """Validate and normalize an address.

    Hex addresses are lower-cased so that checksummed and plain spellings
    share a quota key. Other address formats are kept verbatim.

    Raises
    ------
    InvalidArgument
        If the value is missing, not a string, or blank.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidArgument(field, f"{field} cannot be empty")
    if not isinstance(value, str):
        raise InvalidArgument(field, f"{field} must be a string")
    address = value.strip()
    if ADDRESS_PATTERN.match(address):
        return address.lower()
    return address


def parse_amount(value, field: str = "amount", maximum: Decimal | None = None) -> Decimal:
    """Parse a positive token amount.

    Raises
    ------
    InvalidArgument
        If the amount is missing, not numeric, not positive, or above ``maximum``.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidArgument(field, f"{field} cannot be empty")
    if isinstance(value, bool):
        raise InvalidArgument(field, f"{field} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidArgument(field, f"{field} must be a number") from None
    if not amount.is_finite():
        raise InvalidArgument(field, f"{field} must be a number")
    if amount <= 0:
        raise InvalidArgument(field, f"{field} must be positive")
    if maximum is not None and amount > maximum:
        raise InvalidArgument(field, f"{field} exceeds maximum of {maximum}")
    return amount


def quota_key(dimension: QuotaDimension, address: str) -> str:
    """Lock/counter key for one quota dimension of an address."""
    return f"{dimension.value}:{address}"


def evaluate(
    identity_used: Decimal,
    destination_used: Decimal,
    requested: Decimal,
    limits: QuotaLimits,
) -> Decision:
    """Decide whether ``requested`` fits both daily quotas.

    The identity quota is reported first when both would be exceeded.
    """
    identity_total = identity_used + requested
    if identity_total > limits.identity:
        return Decision(
            admitted=False,
            requested=requested,
            identity_used=identity_used,
            destination_used=destination_used,
            reason=RejectionReason.IDENTITY_QUOTA_EXCEEDED,
            would_be_total=identity_total,
            limit=limits.identity,
        )

    destination_total = destination_used + requested
    if destination_total > limits.destination:
        return Decision(
            admitted=False,
            requested=requested,
            identity_used=identity_used,
            destination_used=destination_used,
            reason=RejectionReason.DESTINATION_QUOTA_EXCEEDED,
            would_be_total=destination_total,
            limit=limits.destination,
        )

    return Decision(
        admitted=True,
        requested=requested,
        identity_used=identity_used,
        destination_used=destination_used,
    )
