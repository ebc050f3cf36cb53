"""Contract status rules.

A contract is created as ``draft`` and may be edited any number of times while
it stays there.  Signing moves it to ``signed``.  ``locked`` is reserved for
administrative use: nothing here produces it, but it is treated exactly like
``signed`` (read-only, no re-signing).
"""

from __future__ import annotations

import calendar
from datetime import date, datetime

from quotedesk.common.enums import ContractStatus
from quotedesk.common.exceptions import PreconditionFailedError

IMMUTABLE_STATUSES = frozenset({ContractStatus.SIGNED, ContractStatus.LOCKED})

VALID_TRANSITIONS: dict[ContractStatus, list[ContractStatus]] = {
    ContractStatus.DRAFT: [ContractStatus.SIGNED],
    ContractStatus.SIGNED: [],
    ContractStatus.LOCKED: [],
}


def is_immutable(status: ContractStatus | str) -> bool:
    return ContractStatus(status) in IMMUTABLE_STATUSES


def can_transition(current: ContractStatus | str, target: ContractStatus | str) -> bool:
    return ContractStatus(target) in VALID_TRANSITIONS.get(ContractStatus(current), [])


def ensure_editable(contract_id: str, status: ContractStatus | str) -> None:
    status = ContractStatus(status)
    if status != ContractStatus.DRAFT:
        raise PreconditionFailedError(
            f"Contract '{contract_id}' is {status.value} and can no longer be edited"
        )


def ensure_transition(
    contract_id: str, current: ContractStatus | str, target: ContractStatus | str
) -> None:
    if not can_transition(current, target):
        raise PreconditionFailedError(
            f"Contract '{contract_id}' cannot move from "
            f"'{ContractStatus(current).value}' to '{ContractStatus(target).value}'"
        )


def add_months(start: date | datetime, months: int) -> date:
    """Calendar month arithmetic; the day is clamped to the target month's end."""
    if isinstance(start, datetime):
        start = start.date()
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def expiration_date(signed_at: datetime | None, term_months: int | None) -> date | None:
    if signed_at is None or not term_months or term_months <= 0:
        return None
    return add_months(signed_at, term_months)
