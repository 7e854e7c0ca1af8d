import pytest
from datetime import timedelta
from sqlalchemy.future import select

from moveprice.core.enums import CounterOfferStatus, EventType, QuotationStatus
from moveprice.core.exceptions import (
    AlreadyBound, AlreadyResolved, DuplicateActiveQuotation, Expired, NotFound,
)
from moveprice.models.status_event import StatusEvent
from moveprice.services import negotiation, quotations
from conftest import OTHER_TRANSPORT_ID, TRANSPORT_ID


@pytest.fixture
async def booking_id(create_booking, create_rate_card):
    await create_rate_card(TRANSPORT_ID)
    await create_rate_card(OTHER_TRANSPORT_ID, base_price=120000)
    return await create_booking()


@pytest.fixture
def submit(db, price_for, transport, other_transport, now):
    async def _submit(booking_id, actor=None, **kwargs):
        actor = actor or transport
        breakdown, rates = await price_for(actor.id)
        kwargs.setdefault("now", now)
        return await quotations.submit_quotation(db, booking_id, actor.id, breakdown, actor, rates=rates, **kwargs)

    return _submit


class TestSubmitQuotation:

    @pytest.mark.asyncio
    async def test_submit_creates_pending_quotation(self, submit, booking_id, now):
        quotation = await submit(booking_id, notes="Two movers")

        assert quotation.id is not None
        assert quotation.status == QuotationStatus.PENDING
        assert quotation.total_price == 100000
        assert quotation.current_price == quotation.total_price
        assert quotation.notes == "Two movers"
        assert quotation.price_breakdown["total"] == 100000
        assert quotation.price_breakdown["rates"]["base_price"] == 100000

    @pytest.mark.asyncio
    async def test_default_validity_window(self, submit, booking_id, now, app_settings):
        quotation = await submit(booking_id)
        assert quotation.expires_at == now + timedelta(hours=app_settings.QUOTATION_VALIDITY_HOURS)

    @pytest.mark.asyncio
    async def test_zero_validity_never_expires(self, submit, booking_id):
        quotation = await submit(booking_id, validity_hours=0)
        assert quotation.expires_at is None

    @pytest.mark.asyncio
    async def test_duplicate_pending_quotation_rejected(self, submit, booking_id):
        await submit(booking_id)
        with pytest.raises(DuplicateActiveQuotation):
            await submit(booking_id)

    @pytest.mark.asyncio
    async def test_other_transport_can_quote_same_booking(self, submit, booking_id, other_transport):
        first = await submit(booking_id)
        second = await submit(booking_id, actor=other_transport)
        assert first.id != second.id
        assert second.total_price == 120000

    @pytest.mark.asyncio
    async def test_resubmit_after_rejection(self, db, submit, booking_id, customer, now):
        first = await submit(booking_id)
        await quotations.reject_quotation(db, first.id, customer, reason="Too expensive", now=now)
        second = await submit(booking_id)
        assert second.status == QuotationStatus.PENDING

    @pytest.mark.asyncio
    async def test_overdue_quotation_does_not_block_resubmission(self, submit, booking_id, now):
        first = await submit(booking_id, validity_hours=1)
        second = await submit(booking_id, now=now + timedelta(hours=2))
        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_unknown_booking(self, submit, booking_id):
        with pytest.raises(NotFound):
            await submit(12345)

    @pytest.mark.asyncio
    async def test_bound_booking_rejects_new_quotations(self, db, submit, booking_id, other_transport, customer, now):
        quotation = await submit(booking_id)
        await quotations.accept_quotation(db, quotation.id, customer, now=now)
        with pytest.raises(AlreadyBound):
            await submit(booking_id, actor=other_transport)


class TestListAndGet:

    @pytest.mark.asyncio
    async def test_list_active_sorted_by_price(self, db, submit, booking_id, other_transport, now):
        await submit(booking_id, actor=other_transport)
        await submit(booking_id)

        active = await quotations.list_active(db, booking_id, now=now)
        assert [q.current_price for q in active] == [100000, 120000]

    @pytest.mark.asyncio
    async def test_list_active_expires_overdue(self, db, submit, booking_id, other_transport, now):
        await submit(booking_id, validity_hours=1)
        await submit(booking_id, actor=other_transport, validity_hours=10)

        active = await quotations.list_active(db, booking_id, now=now + timedelta(hours=2))
        assert [q.transport_id for q in active] == [OTHER_TRANSPORT_ID]

        everything = await quotations.list_for_booking(db, booking_id, now=now + timedelta(hours=2))
        assert [q.status for q in everything] == [QuotationStatus.EXPIRED, QuotationStatus.PENDING]

    @pytest.mark.asyncio
    async def test_get_lazily_expires(self, db, submit, booking_id, now):
        quotation = await submit(booking_id, validity_hours=1)

        fetched = await quotations.get_quotation(db, quotation.id, now=now + timedelta(minutes=30))
        assert fetched.status == QuotationStatus.PENDING

        fetched = await quotations.get_quotation(db, quotation.id, now=now + timedelta(hours=1, seconds=1))
        assert fetched.status == QuotationStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_get_unknown_quotation(self, db):
        with pytest.raises(NotFound):
            await quotations.get_quotation(db, 999)


class TestExpireAndReject:

    @pytest.mark.asyncio
    async def test_expire_is_idempotent(self, db, submit, booking_id, now):
        quotation = await submit(booking_id)

        expired = await quotations.expire_quotation(db, quotation.id, now=now)
        assert expired.status == QuotationStatus.EXPIRED
        again = await quotations.expire_quotation(db, quotation.id, now=now)
        assert again.status == QuotationStatus.EXPIRED

        res = await db.execute(select(StatusEvent).where(StatusEvent.quotation_id == quotation.id))
        assert len(res.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_expire_cascades_to_pending_counter_offer(self, db, submit, booking_id, customer, now):
        quotation = await submit(booking_id)
        counter_offer = await negotiation.propose_counter_offer(db, quotation.id, 90000, customer, now=now)

        await quotations.expire_quotation(db, quotation.id, now=now)

        counter_offer = await negotiation.get_counter_offer(db, counter_offer.id, now=now)
        assert counter_offer.status == CounterOfferStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_reject_records_reason_and_event(self, db, submit, booking_id, customer, now):
        quotation = await submit(booking_id)

        rejected = await quotations.reject_quotation(db, quotation.id, customer, reason="Found cheaper", now=now)
        assert rejected.status == QuotationStatus.REJECTED
        assert rejected.rejection_reason == "Found cheaper"

        res = await db.execute(select(StatusEvent).where(StatusEvent.quotation_id == quotation.id))
        event = res.scalars().one()
        assert event.event_type == EventType.BID_STATUS_CHANGED
        assert event.status == "REJECTED"

    @pytest.mark.asyncio
    async def test_reject_terminal_quotation(self, db, submit, booking_id, customer, now):
        quotation = await submit(booking_id)
        await quotations.reject_quotation(db, quotation.id, customer, now=now)
        with pytest.raises(AlreadyResolved):
            await quotations.reject_quotation(db, quotation.id, customer, now=now)

    @pytest.mark.asyncio
    async def test_reject_overdue_quotation_expires_it(self, db, submit, booking_id, customer, now):
        quotation_id = (await submit(booking_id, validity_hours=1)).id
        with pytest.raises(Expired):
            await quotations.reject_quotation(db, quotation_id, customer, now=now + timedelta(hours=2))

        fetched = await quotations.get_quotation(db, quotation_id, now=now + timedelta(hours=2))
        assert fetched.status == QuotationStatus.EXPIRED
