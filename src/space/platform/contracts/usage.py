"""
Usage-level lifecycle.

Pure functions over contracts: usage levels go from ACTIVE to EXPIRED when
``now`` passes their reset timestamp, and back to ACTIVE with zero
consumption when reset. Nothing here performs I/O or reads the clock.
"""

import calendar
from datetime import datetime, timedelta

from space.platform.contracts.models import ConsumptionRecord, Contract, UsageLevel
from space.platform.pricing.models import Period, PeriodUnit, Pricing, UsageLimit

DEFAULT_PERIOD = Period(value=1, unit=PeriodUnit.MONTH)

_FIXED_UNITS = {
    PeriodUnit.SEC: timedelta(seconds=1),
    PeriodUnit.MIN: timedelta(minutes=1),
    PeriodUnit.HOUR: timedelta(hours=1),
    PeriodUnit.DAY: timedelta(days=1),
}


def _add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def add_period(moment: datetime, period: Period, times: int = 1) -> datetime:
    """Shift ``moment`` forward by ``times`` renewal periods."""
    if period.unit in _FIXED_UNITS:
        return moment + _FIXED_UNITS[period.unit] * period.value * times
    months = period.value * times * (12 if period.unit is PeriodUnit.YEAR else 1)
    return _add_months(moment, months)


def next_reset_timestamp(reset_timestamp: datetime, period: Period, now: datetime) -> datetime:
    """Advance an expired reset timestamp by whole periods until it lies after ``now``."""
    periods = 1
    candidate = add_period(reset_timestamp, period, periods)
    while candidate <= now:
        periods += 1
        candidate = add_period(reset_timestamp, period, periods)
    return candidate


def is_expired(level: UsageLevel, now: datetime) -> bool:
    return level.reset_timestamp is not None and now > level.reset_timestamp


def expired_usage_levels(contract: Contract, now: datetime) -> list[tuple[str, str]]:
    """List ``(service, usage limit)`` pairs whose reset timestamp has passed."""
    return [
        (service, limit)
        for service, levels in contract.usage_levels.items()
        for limit, level in levels.items()
        if is_expired(level, now)
    ]


def reset_usage_levels(
    contract: Contract,
    expired: list[tuple[str, str]],
    pricings: dict[str, Pricing],
    now: datetime,
) -> Contract:
    """Return a copy with the given usage levels zeroed and rescheduled.

    The renewal period comes from the usage limit of the contracted
    pricing; a limit no longer renewable in that pricing loses its
    reset timestamp.
    """
    updated = contract.model_copy(deep=True)
    for service, limit_name in expired:
        level = updated.usage_levels.get(service, {}).get(limit_name)
        if level is None:
            continue
        pricing = pricings.get(service)
        limit = pricing.usage_limits.get(limit_name) if pricing else None
        reset_timestamp = None
        if limit is not None and limit.is_renewable and level.reset_timestamp is not None:
            reset_timestamp = next_reset_timestamp(
                level.reset_timestamp, limit.period or DEFAULT_PERIOD, now
            )
        updated.usage_levels[service][limit_name] = UsageLevel(
            consumed=0, reset_timestamp=reset_timestamp
        )
    return updated


def new_usage_level(limit: UsageLimit | None, now: datetime) -> UsageLevel:
    """Empty usage level, scheduled for its first reset when the limit renews."""
    if limit is not None and limit.is_renewable:
        reset_timestamp = add_period(now, limit.period or DEFAULT_PERIOD)
        return UsageLevel(consumed=0, reset_timestamp=reset_timestamp)
    return UsageLevel(consumed=0)


def generate_usage_levels(pricing: Pricing, now: datetime) -> dict[str, UsageLevel]:
    """Fresh usage levels for every trackable or renewable limit of a pricing."""
    return {
        limit.name: new_usage_level(limit, now)
        for limit in pricing.usage_limits.values()
        if limit.trackable or limit.is_renewable
    }


def record_consumption(
    contract: Contract,
    service: str,
    feature: str,
    amounts: dict[str, float],
    now: datetime,
    pricing: Pricing | None = None,
) -> Contract:
    """Return a copy with ``amounts`` added to the service's usage levels.

    Each amount is logged as a record attributed to ``feature`` so it can
    be reverted later. A usage level seen for the first time is created
    from the usage limit of ``pricing``, so renewable limits get their
    reset timestamp. Limit checks are the caller's responsibility.
    """
    updated = contract.model_copy(deep=True)
    levels = updated.usage_levels.setdefault(service, {})
    limits = pricing.usage_limits if pricing is not None else {}
    for limit_name, amount in amounts.items():
        if limit_name not in levels:
            levels[limit_name] = new_usage_level(limits.get(limit_name), now)
        level = levels[limit_name]
        level.consumed += amount
        level.records.append(ConsumptionRecord(feature=feature, amount=amount, recorded_at=now))
    return updated


def revert_consumption(
    contract: Contract, service: str | None, feature: str, latest: bool = True
) -> tuple[Contract, float]:
    """Undo recorded consumption of ``feature``.

    With ``latest`` only the most recent record of the feature is removed
    from each affected usage level; otherwise all of its records are.
    ``service`` restricts the search to one service when given.

    Returns:
        The updated copy and the total amount reverted
    """
    updated = contract.model_copy(deep=True)
    reverted = 0.0
    for service_name, levels in updated.usage_levels.items():
        if service is not None and service_name != service:
            continue
        for level in levels.values():
            indexes = [i for i, record in enumerate(level.records) if record.feature == feature]
            if latest:
                indexes = indexes[-1:]
            for index in reversed(indexes):
                record = level.records.pop(index)
                level.consumed = max(0, level.consumed - record.amount)
                reverted += record.amount
    return updated, reverted
