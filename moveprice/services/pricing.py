from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from moveprice.schemas.pricing import (
    BookingItemIn,
    BreakdownLine,
    FloorContext,
    PriceBreakdown,
    RateSnapshot,
    TimeContext,
)

FIRST_TIER_KM = Decimal("4")
SECOND_TIER_KM = Decimal("36")  # 5-40km
HEAVY_ITEM_KG = Decimal("100")
HIGH_FLOOR = 3


def _dec(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def round_currency(value) -> int:
    """Half-up rounding to whole currency units."""
    return int(_dec(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def distance_tiers(distance_km, rates: RateSnapshot) -> list[tuple[Decimal, int, int]]:
    """Split a distance into (km, rate, rounded amount) per tier actually travelled."""
    remaining = _dec(distance_km)
    tiers = []
    for span, rate in (
        (FIRST_TIER_KM, rates.per_km_first_4km),
        (SECOND_TIER_KM, rates.per_km_5_to_40km),
        (None, rates.per_km_after_40km),
    ):
        if remaining <= 0:
            break
        km = remaining if span is None else min(remaining, span)
        tiers.append((km, rate, round_currency(km * _dec(rate))))
        remaining -= km
    return tiers


def calculate_distance_price(distance_km, rates: RateSnapshot) -> int:
    return sum(amount for _, _, amount in distance_tiers(distance_km, rates))


def describe_distance(distance_km, rates: RateSnapshot) -> str:
    parts = [f"{km.normalize():f}km x {rate:,}" for km, rate, _ in distance_tiers(distance_km, rates)]
    return " + ".join(parts) if parts else "0km"


def calculate_item_price(item: BookingItemIn, rates: RateSnapshot) -> Optional[int]:
    category = rates.categories.get(item.category_id)
    if category is None:
        return None

    price = _dec(category.price_per_unit) * item.quantity
    if item.is_fragile and category.fragile_multiplier:
        price *= _dec(category.fragile_multiplier)
    if item.requires_disassembly and category.disassembly_multiplier:
        price *= _dec(category.disassembly_multiplier)
    if item.weight_kg is not None and _dec(item.weight_kg) > HEAVY_ITEM_KG and category.heavy_multiplier:
        price *= _dec(category.heavy_multiplier)
    return round_currency(price)


def calculate_items_price(items: Iterable[BookingItemIn], rates: RateSnapshot) -> tuple[int, int]:
    """Return (items price, number of priced items). Items without a category rate are skipped."""
    total = 0
    priced = 0
    for item in items:
        amount = calculate_item_price(item, rates)
        if amount is None:
            continue
        total += amount
        priced += 1
    return total, priced


def calculate_floor_fees(floor: FloorContext, rates: RateSnapshot) -> int:
    total = 0
    if floor.pickup_floor > HIGH_FLOOR and not floor.has_elevator_pickup:
        total += rates.no_elevator_fee
    if floor.delivery_floor > HIGH_FLOOR and not floor.has_elevator_delivery:
        total += rates.no_elevator_fee
    return total


def select_time_multiplier(timing: TimeContext, rates: RateSnapshot) -> tuple[Decimal, Optional[str]]:
    if timing.is_holiday:
        return _dec(rates.holiday_multiplier), "Holiday"
    if timing.is_weekend:
        return _dec(rates.weekend_multiplier), "Weekend"
    if timing.is_peak_hour:
        return _dec(rates.peak_hour_multiplier), "Peak hour"
    return Decimal("1"), None


def calculate_price(
    distance_km,
    items: Iterable[BookingItemIn],
    rates: RateSnapshot,
    floor: FloorContext,
    timing: TimeContext,
) -> PriceBreakdown:
    """Itemized price for a move.

    Pure function over validated, non-negative inputs. Every component is
    rounded to whole units before summing, and the surcharge line is the
    difference between total and subtotal, so the breakdown lines always add
    up to the total.
    """
    items = list(items)
    lines = []

    base_price = rates.base_price
    lines.append(BreakdownLine(label="Base price", amount=base_price))

    distance_price = calculate_distance_price(distance_km, rates)
    lines.append(BreakdownLine(
        label=f"Distance ({float(distance_km):.1f}km)",
        amount=distance_price,
        description=describe_distance(distance_km, rates),
    ))

    items_price, priced_count = calculate_items_price(items, rates)
    if items_price > 0:
        lines.append(BreakdownLine(label=f"Items ({priced_count})", amount=items_price))

    floor_fees = calculate_floor_fees(floor, rates)
    if floor_fees > 0:
        lines.append(BreakdownLine(label="Floor surcharge", amount=floor_fees))

    subtotal = base_price + distance_price + items_price + floor_fees

    multiplier, surcharge_label = select_time_multiplier(timing, rates)
    total = round_currency(_dec(subtotal) * multiplier)
    if surcharge_label is not None:
        lines.append(BreakdownLine(
            label=f"{surcharge_label} (x{multiplier.normalize():f})",
            amount=total - subtotal,
        ))

    return PriceBreakdown(
        base_price=base_price,
        distance_price=distance_price,
        items_price=items_price,
        floor_fees=floor_fees,
        time_multiplier=float(multiplier),
        subtotal=subtotal,
        total=total,
        breakdown=lines,
    )
