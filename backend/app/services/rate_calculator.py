"""Monthly rate and deposit rules for water, trash and recycling service (deterministic, no I/O).

All money is ``Decimal`` quantized to cents, so line items always add up exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from app.schemas.water_service_request import PropertyUseType, ServiceTerritory
from app.services.validators import parse_iso_date, validate_date_range, validate_future_date

CENTS = Decimal("0.01")

BASE_WATER_RATE = Decimal("35.00")
OUTSIDE_CITY_WATER_SURCHARGE = Decimal("10.00")
TRASH_BASE_RATE = Decimal("15.00")
ADDITIONAL_TRASH_CART_FEE = Decimal("5.00")
RECYCLE_BASE_RATE = Decimal("8.00")
ADDITIONAL_RECYCLE_CART_FEE = Decimal("3.00")
POOL_SURCHARGE = Decimal("15.00")
# Informational only; the surcharge above is what is billed.
OUTSIDE_CITY_TERRITORY_MULTIPLIER = Decimal("1.29")

BASE_DEPOSITS = {
    PropertyUseType.RENT: Decimal("200"),
    PropertyUseType.OWNER_OCCUPIED: Decimal("75"),
    PropertyUseType.OWNER_LEASING: Decimal("125"),
}
OUTSIDE_CITY_DEPOSIT_ADJUSTMENT = Decimal("50")
NO_CREDIT_CHECK_ADJUSTMENT = Decimal("100")
POOR_CREDIT_ADJUSTMENT = Decimal("100")
GOOD_CREDIT_ADJUSTMENT = Decimal("-25")
POOR_CREDIT_BELOW = 600
GOOD_CREDIT_FROM = 700
MINIMUM_DEPOSIT = Decimal("50")

IRRIGATION_NOTES = (
    "Irrigation rates apply based on usage tiers",
    "Tier 1 (0-5k gallons): Base rate",
    "Tier 2 (5k-10k gallons): +$0.50/1k gallons",
    "Tier 3 (10k+ gallons): +$1.00/1k gallons",
)
USAGE_DISCLAIMER = "Actual bill may vary based on water usage"


def money(value: Union[Decimal, int, str]) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    return f"${money(value):,.2f}"


def _coerce_territory(territory: Union[ServiceTerritory, str, None]) -> Optional[ServiceTerritory]:
    if territory is None or territory == "":
        return None
    return ServiceTerritory(territory)


def is_outside_city(territory: Union[ServiceTerritory, str, None]) -> bool:
    return _coerce_territory(territory) == ServiceTerritory.OUTSIDE_CITY_LIMITS


@dataclass(frozen=True)
class RateCalculation:
    water_rate: Decimal
    trash_rate: Decimal
    recycle_rate: Decimal
    pool_surcharge: Decimal
    subtotal: Decimal
    estimated_total: Decimal
    notes: tuple[str, ...] = field(default_factory=tuple)
    base_water_rate: Decimal = BASE_WATER_RATE
    trash_base_rate: Decimal = TRASH_BASE_RATE
    recycle_base_rate: Decimal = RECYCLE_BASE_RATE
    territory_multiplier: Decimal = Decimal("1.0")
    additional_trash_cart_fee: Decimal = ADDITIONAL_TRASH_CART_FEE
    additional_recycle_cart_fee: Decimal = ADDITIONAL_RECYCLE_CART_FEE
    irrigation_tier_rate: Decimal = Decimal("0.00")
    deposit_required: Decimal = Decimal("0.00")

    def as_dict(self) -> dict:
        return {
            "water_rate": self.water_rate,
            "trash_rate": self.trash_rate,
            "recycle_rate": self.recycle_rate,
            "pool_surcharge": self.pool_surcharge,
            "subtotal": self.subtotal,
            "estimated_total": self.estimated_total,
            "notes": list(self.notes),
            "base_water_rate": self.base_water_rate,
            "trash_base_rate": self.trash_base_rate,
            "recycle_base_rate": self.recycle_base_rate,
            "territory_multiplier": self.territory_multiplier,
            "additional_trash_cart_fee": self.additional_trash_cart_fee,
            "additional_recycle_cart_fee": self.additional_recycle_cart_fee,
            "irrigation_tier_rate": self.irrigation_tier_rate,
            "deposit_required": self.deposit_required,
        }

    def to_metadata(self) -> dict:
        """JSON-safe form for the record's metadata bag (amounts as exact strings)."""
        out = {}
        for key, value in self.as_dict().items():
            out[key] = str(value) if isinstance(value, Decimal) else value
        return out


def trash_rate_for(carts: int) -> Decimal:
    if carts <= 0:
        return money(0)
    additional = max(0, carts - 1)
    return money(TRASH_BASE_RATE + additional * ADDITIONAL_TRASH_CART_FEE)


def recycle_rate_for(carts: int) -> Decimal:
    if carts <= 0:
        return money(0)
    additional = max(0, carts - 1)
    return money(RECYCLE_BASE_RATE + additional * ADDITIONAL_RECYCLE_CART_FEE)


def _plural(count: int) -> str:
    return "s" if count > 1 else ""


def calculate_monthly_rate(
    territory: Union[ServiceTerritory, str, None],
    trash_carts: int,
    recycle_carts: int,
    has_pool: bool,
    has_sprinkler: bool,
) -> RateCalculation:
    """Compute the estimated monthly bill breakdown."""
    outside = is_outside_city(territory)

    water_rate = money(BASE_WATER_RATE + (OUTSIDE_CITY_WATER_SURCHARGE if outside else 0))
    trash_rate = trash_rate_for(trash_carts)
    recycle_rate = recycle_rate_for(recycle_carts)
    pool_surcharge = money(POOL_SURCHARGE if has_pool else 0)

    subtotal = money(water_rate + trash_rate + recycle_rate + pool_surcharge)

    notes = [f"Base water service: {format_money(water_rate)}"]
    if trash_rate > 0:
        notes.append(f"Trash service ({trash_carts} cart{_plural(trash_carts)}): {format_money(trash_rate)}")
    if recycle_rate > 0:
        notes.append(f"Recycle service ({recycle_carts} cart{_plural(recycle_carts)}): {format_money(recycle_rate)}")
    if has_pool:
        notes.append(f"Pool surcharge: {format_money(pool_surcharge)}")
    if has_sprinkler:
        notes.extend(IRRIGATION_NOTES)
    notes.append(USAGE_DISCLAIMER)

    return RateCalculation(
        water_rate=water_rate,
        trash_rate=trash_rate,
        recycle_rate=recycle_rate,
        pool_surcharge=pool_surcharge,
        subtotal=subtotal,
        estimated_total=subtotal,
        notes=tuple(notes),
        territory_multiplier=OUTSIDE_CITY_TERRITORY_MULTIPLIER if outside else Decimal("1.0"),
    )


def credit_adjustment(credit_score: Optional[int]) -> Decimal:
    if credit_score is None:
        return NO_CREDIT_CHECK_ADJUSTMENT
    if credit_score < POOR_CREDIT_BELOW:
        return POOR_CREDIT_ADJUSTMENT
    if credit_score < GOOD_CREDIT_FROM:
        return Decimal("0")
    return GOOD_CREDIT_ADJUSTMENT


def calculate_deposit(
    property_use_type: Union[PropertyUseType, str],
    territory: Union[ServiceTerritory, str, None],
    credit_score: Optional[int],
) -> Decimal:
    """Required deposit; the $50 floor applies to the total, never per component."""
    try:
        use_type = PropertyUseType(property_use_type)
    except ValueError as exc:
        raise ValueError(f"Unknown property use type: {property_use_type}") from exc

    total = BASE_DEPOSITS[use_type]
    if is_outside_city(territory):
        total += OUTSIDE_CITY_DEPOSIT_ADJUSTMENT
    total += credit_adjustment(credit_score)
    return money(max(MINIMUM_DEPOSIT, total))


def validate_service_start_date(start: Union[str, date, None], today: Optional[date] = None) -> bool:
    return validate_future_date(start, today=today)


def validate_service_dates(start: Union[str, date, None], stop: Union[str, date, None]) -> bool:
    """A stop date is optional; when both are given the stop must come after the start."""
    if parse_iso_date(start) is None or parse_iso_date(stop) is None:
        return True
    return validate_date_range(start, stop)


def get_deposit_examples() -> list[dict]:
    scenarios = [
        ("Best case", PropertyUseType.OWNER_OCCUPIED, ServiceTerritory.INSIDE_CITY_LIMITS, 750),
        ("Typical owner", PropertyUseType.OWNER_OCCUPIED, ServiceTerritory.INSIDE_CITY_LIMITS, 650),
        ("Rental fair credit", PropertyUseType.RENT, ServiceTerritory.INSIDE_CITY_LIMITS, 650),
        ("Worst case", PropertyUseType.RENT, ServiceTerritory.OUTSIDE_CITY_LIMITS, None),
    ]
    return [
        {
            "scenario": label,
            "property_use_type": use_type.value,
            "territory": territory.value,
            "credit_score": score,
            "result": calculate_deposit(use_type, territory, score),
        }
        for label, use_type, territory, score in scenarios
    ]
