import pytest
from datetime import datetime, timezone

from moveprice.core.config import settings
from moveprice.schemas.pricing import PriceRequest, TimeContext

HOLIDAYS = {(1, 1), (4, 30), (5, 1), (9, 2)}
TZ = "Asia/Ho_Chi_Minh"  # UTC+7


@pytest.mark.unit
class TestTimeContextFromDatetime:

    @pytest.mark.parametrize("hour,minute,expected", [
        (6, 59, False),
        (7, 0, True),
        (8, 59, True),
        (9, 0, False),
        (12, 0, False),
        (17, 0, True),
        (18, 30, True),
        (19, 0, False),
    ])
    def test_peak_windows(self, hour, minute, expected):
        # Wednesday, naive local time
        ctx = TimeContext.from_datetime(datetime(2026, 3, 4, hour, minute), HOLIDAYS)
        assert ctx.is_peak_hour is expected
        assert ctx.is_weekend is False

    @pytest.mark.parametrize("day,expected", [
        (6, False),  # Friday
        (7, True),   # Saturday
        (8, True),   # Sunday
        (9, False),  # Monday
    ])
    def test_weekend(self, day, expected):
        ctx = TimeContext.from_datetime(datetime(2026, 3, day, 12, 0), HOLIDAYS)
        assert ctx.is_weekend is expected

    def test_holiday(self):
        ctx = TimeContext.from_datetime(datetime(2026, 4, 30, 12, 0), HOLIDAYS)
        assert ctx.is_holiday is True

    def test_aware_moment_is_converted_to_local_time(self):
        # 01:00 UTC is 08:00 in Ho Chi Minh City
        ctx = TimeContext.from_datetime(datetime(2026, 3, 4, 1, 0, tzinfo=timezone.utc), HOLIDAYS, TZ)
        assert ctx.is_peak_hour is True

    def test_local_date_decides_holiday(self):
        # 2026-04-29 20:00 UTC is already April 30th locally
        ctx = TimeContext.from_datetime(datetime(2026, 4, 29, 20, 0, tzinfo=timezone.utc), HOLIDAYS, TZ)
        assert ctx.is_holiday is True


@pytest.mark.unit
class TestPriceRequestTimeContext:

    def test_no_schedule_means_no_surcharge(self):
        req = PriceRequest(transport_id=1, distance_km=5)
        assert req.time_context(HOLIDAYS, TZ) == TimeContext()

    def test_explicit_flags_override_schedule(self):
        req = PriceRequest(
            transport_id=1,
            distance_km=5,
            scheduled_at=datetime(2026, 3, 7, 8, 0),  # Saturday morning peak
            is_weekend=False,
        )
        ctx = req.time_context(HOLIDAYS, TZ)
        assert ctx.is_weekend is False
        assert ctx.is_peak_hour is True

    def test_explicit_flags_without_schedule(self):
        req = PriceRequest(transport_id=1, distance_km=5, is_holiday=True)
        assert req.time_context().is_holiday is True


@pytest.mark.unit
def test_configured_holidays_parse():
    assert (9, 2) in settings.holiday_dates
    assert (1, 1) in settings.holiday_dates
