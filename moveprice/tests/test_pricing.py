import pytest
from decimal import Decimal
from pydantic import ValidationError

from moveprice.schemas.pricing import (
    BookingItemIn,
    CategoryRateSnapshot,
    FloorContext,
    PriceRequest,
    RateSnapshot,
    TimeContext,
)
from moveprice.services.pricing import (
    calculate_distance_price,
    calculate_floor_fees,
    calculate_item_price,
    calculate_price,
    describe_distance,
    round_currency,
    select_time_multiplier,
)


def make_rates(**overrides) -> RateSnapshot:
    values = dict(
        base_price=100000,
        per_km_first_4km=5000,
        per_km_5_to_40km=3000,
        per_km_after_40km=2000,
        no_elevator_fee=50000,
        peak_hour_multiplier=Decimal("1.2"),
        weekend_multiplier=Decimal("1.3"),
        holiday_multiplier=Decimal("1.5"),
        categories={
            1: CategoryRateSnapshot(
                category_id=1,
                price_per_unit=200000,
                fragile_multiplier=Decimal("1.2"),
                disassembly_multiplier=Decimal("1.1"),
                heavy_multiplier=Decimal("1.5"),
            ),
            2: CategoryRateSnapshot(category_id=2, price_per_unit=50000),
        },
    )
    values.update(overrides)
    return RateSnapshot(**values)


@pytest.mark.pricing
class TestDistanceTiers:

    @pytest.mark.parametrize("distance,expected", [
        (0, 0),
        (1, 5000),
        (4, 20000),
        (5, 23000),
        (40, 128000),
        (41, 130000),
        (45, 138000),
    ])
    def test_tiered_distance_price(self, distance, expected):
        assert calculate_distance_price(distance, make_rates()) == expected

    @pytest.mark.parametrize("boundary", [4, 40])
    def test_tiers_are_continuous_at_boundaries(self, boundary):
        rates = make_rates()
        just_before = calculate_distance_price(Decimal(boundary) - Decimal("0.001"), rates)
        at = calculate_distance_price(boundary, rates)
        just_after = calculate_distance_price(Decimal(boundary) + Decimal("0.001"), rates)
        assert at - just_before <= 5
        assert just_after - at <= 5

    def test_fractional_tiers_rounded_independently(self):
        rates = make_rates(per_km_first_4km=1001, per_km_5_to_40km=1001)
        # 4 x 1001 = 4004, 0.5 x 1001 = 500.5 -> 501
        assert calculate_distance_price(4.5, rates) == 4004 + 501

    def test_describe_distance_lists_each_tier(self):
        text = describe_distance(45, make_rates())
        assert text == "4km x 5,000 + 36km x 3,000 + 5km x 2,000"

    def test_describe_zero_distance(self):
        assert describe_distance(0, make_rates()) == "0km"


@pytest.mark.pricing
class TestItemPricing:

    def test_plain_item(self):
        item = BookingItemIn(category_id=2, quantity=3)
        assert calculate_item_price(item, make_rates()) == 150000

    def test_multipliers_compose_multiplicatively(self):
        item = BookingItemIn(
            category_id=1, quantity=1, weight_kg=150, is_fragile=True, requires_disassembly=True,
        )
        # 200000 x 1.2 x 1.1 x 1.5
        assert calculate_item_price(item, make_rates()) == 396000

    def test_heavy_multiplier_only_above_threshold(self):
        rates = make_rates()
        at_limit = BookingItemIn(category_id=1, quantity=1, weight_kg=100)
        above = BookingItemIn(category_id=1, quantity=1, weight_kg=100.5)
        assert calculate_item_price(at_limit, rates) == 200000
        assert calculate_item_price(above, rates) == 300000

    def test_missing_multiplier_counts_as_one(self):
        item = BookingItemIn(category_id=2, quantity=1, is_fragile=True, requires_disassembly=True)
        assert calculate_item_price(item, make_rates()) == 50000

    def test_unknown_category_is_skipped(self):
        rates = make_rates()
        unknown = BookingItemIn(category_id=999, quantity=5)
        assert calculate_item_price(unknown, rates) is None

        breakdown = calculate_price(
            0,
            [unknown, BookingItemIn(category_id=2, quantity=1)],
            rates,
            FloorContext(),
            TimeContext(),
        )
        assert breakdown.items_price == 50000
        assert any(line.label == "Items (1)" for line in breakdown.breakdown)


@pytest.mark.pricing
class TestFloorFees:

    @pytest.mark.parametrize("pickup,delivery,elev_pickup,elev_delivery,expected", [
        (0, 0, False, False, 0),
        (3, 3, False, False, 0),
        (4, 0, False, False, 50000),
        (5, 7, False, False, 100000),
        (5, 7, True, False, 50000),
        (5, 7, True, True, 0),
    ])
    def test_fee_per_side_without_elevator(self, pickup, delivery, elev_pickup, elev_delivery, expected):
        floor = FloorContext(
            pickup_floor=pickup,
            delivery_floor=delivery,
            has_elevator_pickup=elev_pickup,
            has_elevator_delivery=elev_delivery,
        )
        assert calculate_floor_fees(floor, make_rates()) == expected


@pytest.mark.pricing
class TestTimeMultiplier:

    @pytest.mark.parametrize("peak,weekend,holiday,expected", [
        (False, False, False, Decimal("1")),
        (True, False, False, Decimal("1.2")),
        (False, True, False, Decimal("1.3")),
        (True, True, False, Decimal("1.3")),
        (False, False, True, Decimal("1.5")),
        (True, True, True, Decimal("1.5")),
    ])
    def test_exactly_one_multiplier_by_precedence(self, peak, weekend, holiday, expected):
        timing = TimeContext(is_peak_hour=peak, is_weekend=weekend, is_holiday=holiday)
        multiplier, _ = select_time_multiplier(timing, make_rates())
        assert multiplier == expected

    def test_multiplier_applies_to_whole_subtotal(self):
        breakdown = calculate_price(
            10,
            [BookingItemIn(category_id=2, quantity=1)],
            make_rates(),
            FloorContext(pickup_floor=5),
            TimeContext(is_weekend=True),
        )
        assert breakdown.subtotal == 100000 + 38000 + 50000 + 50000
        assert breakdown.total == round_currency(Decimal(breakdown.subtotal) * Decimal("1.3"))
        assert breakdown.time_multiplier == 1.3
        assert breakdown.breakdown[-1].label == "Weekend (x1.3)"


@pytest.mark.pricing
class TestCalculatePrice:

    def test_end_to_end_example_totals_518000(self):
        # 100000 base + 128000 distance (40km) + 240000 fragile item + 50000 floor
        breakdown = calculate_price(
            40,
            [BookingItemIn(category_id=1, quantity=1, is_fragile=True)],
            make_rates(),
            FloorContext(pickup_floor=5, has_elevator_pickup=False),
            TimeContext(),
        )
        assert breakdown.base_price == 100000
        assert breakdown.distance_price == 4 * 5000 + 36 * 3000
        assert breakdown.items_price == 240000
        assert breakdown.floor_fees == 50000
        assert breakdown.time_multiplier == 1.0
        assert breakdown.subtotal == 518000
        assert breakdown.total == 518000

    def test_45km_bills_five_km_past_the_second_tier(self):
        breakdown = calculate_price(
            45,
            [BookingItemIn(category_id=1, quantity=1, is_fragile=True)],
            make_rates(),
            FloorContext(pickup_floor=5),
            TimeContext(),
        )
        assert breakdown.distance_price == 4 * 5000 + 36 * 3000 + 5 * 2000
        assert breakdown.total == 528000
        assert breakdown.breakdown[1].label == "Distance (45.0km)"

    def test_breakdown_lines_sum_to_total(self):
        breakdown = calculate_price(
            12.345,
            [
                BookingItemIn(category_id=1, quantity=2, is_fragile=True, weight_kg=120),
                BookingItemIn(category_id=2, quantity=1),
            ],
            make_rates(holiday_multiplier=Decimal("1.333")),
            FloorContext(pickup_floor=6, delivery_floor=9, has_elevator_delivery=True),
            TimeContext(is_holiday=True),
        )
        assert sum(line.amount for line in breakdown.breakdown) == breakdown.total

    def test_no_surcharge_line_without_multiplier(self):
        breakdown = calculate_price(0, [], make_rates(), FloorContext(), TimeContext())
        assert [line.label for line in breakdown.breakdown] == ["Base price", "Distance (0.0km)"]
        assert breakdown.total == breakdown.subtotal == 100000

    def test_result_is_deterministic(self):
        args = (
            33.3,
            [BookingItemIn(category_id=1, quantity=1, is_fragile=True)],
            make_rates(),
            FloorContext(pickup_floor=4),
            TimeContext(is_peak_hour=True),
        )
        assert calculate_price(*args) == calculate_price(*args)


@pytest.mark.pricing
class TestRounding:

    @pytest.mark.parametrize("value,expected", [
        (Decimal("0.5"), 1),
        (Decimal("1.5"), 2),
        (Decimal("2.5"), 3),
        (Decimal("2.4999"), 2),
        (Decimal("100.0"), 100),
    ])
    def test_half_up(self, value, expected):
        assert round_currency(value) == expected


@pytest.mark.pricing
class TestPriceRequestValidation:

    def test_negative_distance_rejected(self):
        with pytest.raises(ValidationError):
            PriceRequest(transport_id=1, distance_km=-1)

    def test_negative_quantity_rejected(self):
        with pytest.raises(ValidationError):
            BookingItemIn(category_id=1, quantity=-2)

    def test_negative_floor_rejected(self):
        with pytest.raises(ValidationError):
            PriceRequest(transport_id=1, distance_km=3, pickup_floor=-1)
