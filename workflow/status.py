"""Display status derivation for executed contracts.

Once signed, a contract's active/expiring/expired state depends only on the
calendar. These helpers compute it on read; the engine never persists the
derived value.
"""

from datetime import date
from typing import Any, Dict, Optional

import msgspec

from workflow.models import Contract, ContractStatus, EXECUTED_STATUSES

DEFAULT_EXPIRING_WINDOW_DAYS = 30


def days_until_expiry(contract: Contract, today: date) -> Optional[int]:
    """Whole days from ``today`` to the contract end date.

    Negative once the end date has passed, ``None`` without an end date.
    """
    if contract.end_date is None:
        return None
    return (contract.end_date - today).days


def derive_display_status(
    contract: Contract,
    today: date,
    expiring_window_days: int = DEFAULT_EXPIRING_WINDOW_DAYS,
) -> ContractStatus:
    """Status to show for ``contract`` on ``today``.

    Pre-signature statuses pass through unchanged.
    """
    if contract.status not in EXECUTED_STATUSES:
        return contract.status

    remaining = days_until_expiry(contract, today)
    if remaining is not None:
        if remaining < 0:
            return ContractStatus.EXPIRED
        if remaining <= expiring_window_days:
            return ContractStatus.EXPIRING

    if contract.start_date is not None and contract.start_date > today:
        return ContractStatus.SIGNED
    return ContractStatus.ACTIVE


def expiry_label(days: Optional[int]) -> str:
    """Short human label for a days-until-expiry value."""
    if days is None:
        return "No end date"
    if days < 0:
        return "Expired"
    if days == 0:
        return "Today"
    if days == 1:
        return "1 day"
    return f"{days} days"


def contract_view(
    contract: Contract,
    today: date,
    expiring_window_days: int = DEFAULT_EXPIRING_WINDOW_DAYS,
) -> Dict[str, Any]:
    """Wire form of ``contract`` plus its date-derived display fields."""
    data = msgspec.to_builtins(contract)
    days = days_until_expiry(contract, today)
    data["displayStatus"] = derive_display_status(contract, today, expiring_window_days).value
    data["expiresInDays"] = days
    data["expiryLabel"] = expiry_label(days)
    return data
