from datetime import datetime, time
from decimal import Decimal
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field


class BookingItemIn(BaseModel):
    category_id: int
    quantity: int = Field(1, ge=0)
    weight_kg: Optional[float] = Field(None, ge=0)
    is_fragile: bool = False
    requires_disassembly: bool = False


class FloorContext(BaseModel):
    pickup_floor: int = Field(0, ge=0)
    delivery_floor: int = Field(0, ge=0)
    has_elevator_pickup: bool = False
    has_elevator_delivery: bool = False


PEAK_WINDOWS = ((time(7, 0), time(9, 0)), (time(17, 0), time(19, 0)))


class TimeContext(BaseModel):
    is_peak_hour: bool = False
    is_weekend: bool = False
    is_holiday: bool = False

    @classmethod
    def from_datetime(
        cls,
        moment: datetime,
        holidays: set[tuple[int, int]] = frozenset(),
        tz: Optional[str] = None,
    ) -> "TimeContext":
        """Derive the surcharge flags for a scheduled move.

        Peak hours are 07:00-09:00 and 17:00-19:00 local time, weekends are
        Saturday and Sunday, holidays are (month, day) pairs.
        """
        local = moment.astimezone(ZoneInfo(tz)) if tz and moment.tzinfo else moment
        clock = local.time()
        return cls(
            is_peak_hour=any(start <= clock < end for start, end in PEAK_WINDOWS),
            is_weekend=local.weekday() >= 5,
            is_holiday=(local.month, local.day) in holidays,
        )


class CategoryRateSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_id: int
    rate_id: Optional[int] = None
    price_per_unit: int
    fragile_multiplier: Optional[Decimal] = None
    disassembly_multiplier: Optional[Decimal] = None
    heavy_multiplier: Optional[Decimal] = None


class RateSnapshot(BaseModel):
    """Values of a vehicle rate card and category rates, copied at read time."""
    model_config = ConfigDict(frozen=True)

    rate_card_id: Optional[int] = None
    transport_id: Optional[int] = None
    base_price: int
    per_km_first_4km: int
    per_km_5_to_40km: int
    per_km_after_40km: int
    peak_hour_multiplier: Decimal = Decimal("1")
    weekend_multiplier: Decimal = Decimal("1")
    holiday_multiplier: Decimal = Decimal("1")
    no_elevator_fee: int = 0
    categories: Dict[int, CategoryRateSnapshot] = Field(default_factory=dict)


class BreakdownLine(BaseModel):
    label: str
    amount: int
    description: Optional[str] = None


class PriceBreakdown(BaseModel):
    base_price: int
    distance_price: int
    items_price: int
    floor_fees: int
    time_multiplier: float
    subtotal: int
    total: int
    breakdown: List[BreakdownLine]


class PriceRequest(BaseModel):
    transport_id: int
    distance_km: float = Field(..., ge=0)
    items: List[BookingItemIn] = Field(default_factory=list)
    pickup_floor: int = Field(0, ge=0)
    delivery_floor: int = Field(0, ge=0)
    has_elevator_pickup: bool = False
    has_elevator_delivery: bool = False
    is_peak_hour: Optional[bool] = None
    is_weekend: Optional[bool] = None
    is_holiday: Optional[bool] = None
    scheduled_at: Optional[datetime] = None

    def floor_context(self) -> FloorContext:
        return FloorContext(
            pickup_floor=self.pickup_floor,
            delivery_floor=self.delivery_floor,
            has_elevator_pickup=self.has_elevator_pickup,
            has_elevator_delivery=self.has_elevator_delivery,
        )

    def time_context(self, holidays: set[tuple[int, int]] = frozenset(), tz: Optional[str] = None) -> TimeContext:
        # Explicit flags win over the ones derived from scheduled_at.
        derived = (
            TimeContext.from_datetime(self.scheduled_at, holidays, tz)
            if self.scheduled_at is not None
            else TimeContext()
        )
        return TimeContext(
            is_peak_hour=derived.is_peak_hour if self.is_peak_hour is None else self.is_peak_hour,
            is_weekend=derived.is_weekend if self.is_weekend is None else self.is_weekend,
            is_holiday=derived.is_holiday if self.is_holiday is None else self.is_holiday,
        )
