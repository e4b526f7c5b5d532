"""
Compensation tier table.

Tiers are ordered ascending by min_delay_minutes, contiguous (each tier's max is
the next tier's min) and the top tier is open-ended. For any delay at or above
the lowest minimum exactly one tier applies: the one with the greatest minimum
that the delay meets.

The table is data: DEFAULT_COMPENSATION_TIERS mirrors the current policy, and
deployments override it with AUTOCLAIM_COMPENSATION_TIERS (see
app.jobs.delay_monitor.config). Invalid tables raise ConfigError at load time.
"""

from __future__ import annotations

import json
from typing import Iterator, Optional, Sequence

from app.core.errors import ConfigError
from app.eligibility.types import CompensationTier

# Global eligibility threshold, independent of the tier table: a delay
# below it is ineligible even if some tier starts lower.
COMPENSATION_THRESHOLD_MINUTES = 60


class TierTable:
    def __init__(self, tiers: Sequence[CompensationTier]):
        self._tiers: tuple[CompensationTier, ...] = tuple(tiers)
        validate_tiers(self._tiers)

    def __iter__(self) -> Iterator[CompensationTier]:
        return iter(self._tiers)

    def __len__(self) -> int:
        return len(self._tiers)

    def __getitem__(self, idx: int) -> CompensationTier:
        return self._tiers[idx]

    def __eq__(self, other) -> bool:
        return isinstance(other, TierTable) and self._tiers == other._tiers

    def __repr__(self) -> str:
        return f"TierTable({[t.name for t in self._tiers]})"

    @property
    def lowest_minimum(self) -> int:
        return self._tiers[0].min_delay_minutes

    def boundaries(self) -> list[int]:
        return [t.min_delay_minutes for t in self._tiers]

    def tier_for_delay(self, delay_minutes: int) -> Optional[CompensationTier]:
        if delay_minutes < self.lowest_minimum:
            return None
        for tier in reversed(self._tiers):
            if delay_minutes >= tier.min_delay_minutes:
                return tier
        return None


def validate_tiers(tiers: Sequence[CompensationTier]) -> None:
    if not tiers:
        raise ConfigError("Compensation tier table is empty")

    names = [t.name for t in tiers]
    if len(set(names)) != len(names):
        raise ConfigError(f"Duplicate tier names: {names}")

    for idx, tier in enumerate(tiers):
        is_last = idx == len(tiers) - 1

        if tier.min_delay_minutes < 0:
            raise ConfigError(f"Tier {tier.name!r}: min_delay_minutes must be >= 0")
        for field in ("cash_percentage", "voucher_percentage"):
            pct = getattr(tier, field)
            if not 0.0 <= pct <= 1.0:
                raise ConfigError(f"Tier {tier.name!r}: {field}={pct} must be within [0, 1]")

        if is_last:
            if tier.max_delay_minutes is not None:
                raise ConfigError(f"Top tier {tier.name!r} must be open-ended (max_delay_minutes=null)")
            continue

        nxt = tiers[idx + 1]
        if tier.max_delay_minutes is None:
            raise ConfigError(f"Only the top tier may be open-ended; {tier.name!r} is not the top tier")
        if tier.max_delay_minutes <= tier.min_delay_minutes:
            raise ConfigError(f"Tier {tier.name!r}: max_delay_minutes must exceed min_delay_minutes")
        if nxt.min_delay_minutes != tier.max_delay_minutes:
            raise ConfigError(
                f"Tiers must be contiguous and ascending: {tier.name!r} ends at {tier.max_delay_minutes}, "
                f"{nxt.name!r} starts at {nxt.min_delay_minutes}"
            )
        if nxt.cash_percentage < tier.cash_percentage or nxt.voucher_percentage < tier.voucher_percentage:
            raise ConfigError(f"Tier {nxt.name!r} pays less than the shorter-delay tier {tier.name!r}")


DEFAULT_COMPENSATION_TIERS = TierTable(
    [
        CompensationTier("Standard", 60, 120, cash_percentage=0.25, voucher_percentage=0.60),
        CompensationTier("Extended", 120, 180, cash_percentage=0.50, voucher_percentage=0.60),
        CompensationTier("Severe", 180, None, cash_percentage=0.50, voucher_percentage=0.75),
    ]
)


def get_tier_for_delay(delay_minutes: int, tiers: Optional[TierTable] = None) -> Optional[CompensationTier]:
    """
    get_tier_for_delay(45)  -> None
    get_tier_for_delay(60)  -> Standard
    get_tier_for_delay(120) -> Extended
    get_tier_for_delay(180) -> Severe
    """
    table = tiers if tiers is not None else DEFAULT_COMPENSATION_TIERS
    return table.tier_for_delay(delay_minutes)


def get_tier_name(delay_minutes: int, tiers: Optional[TierTable] = None) -> Optional[str]:
    tier = get_tier_for_delay(delay_minutes, tiers)
    return tier.name if tier else None


def is_eligible_for_compensation(delay_minutes: int, threshold: int = COMPENSATION_THRESHOLD_MINUTES) -> bool:
    return delay_minutes >= threshold


def tier_table_from_rows(rows: Sequence[dict]) -> TierTable:
    """
    Build a table from plain dicts:
      {"name": "Standard", "min_delay_minutes": 60, "max_delay_minutes": 120,
       "cash_percentage": 0.25, "voucher_percentage": 0.6}
    """
    tiers: list[CompensationTier] = []
    for idx, row in enumerate(rows):
        if not isinstance(row, dict):
            raise ConfigError(f"Tier row {idx} must be an object, got {type(row).__name__}")
        try:
            max_delay = row.get("max_delay_minutes")
            tiers.append(
                CompensationTier(
                    name=str(row["name"]),
                    min_delay_minutes=int(row["min_delay_minutes"]),
                    max_delay_minutes=None if max_delay is None else int(max_delay),
                    cash_percentage=float(row["cash_percentage"]),
                    voucher_percentage=float(row["voucher_percentage"]),
                )
            )
        except KeyError as e:
            raise ConfigError(f"Tier row {idx} is missing {e.args[0]!r}") from e
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Tier row {idx} has an invalid value: {e}") from e
    return TierTable(tiers)


def tier_table_from_json(raw: str) -> TierTable:
    try:
        rows = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Compensation tiers are not valid JSON: {e}") from e
    if not isinstance(rows, list):
        raise ConfigError("Compensation tiers must be a JSON list")
    return tier_table_from_rows(rows)
