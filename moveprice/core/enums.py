from enum import Enum


class UserRole(str, Enum):
    CUSTOMER = "customer"
    TRANSPORT = "transport"
    MANAGER = "manager"

    def __str__(self):
        return self.value


class QuotationStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"

    def __str__(self):
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self != QuotationStatus.PENDING

    def can_transition_to(self, target: "QuotationStatus") -> bool:
        return target in QUOTATION_TRANSITIONS[self]


class CounterOfferStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    SUPERSEDED = "SUPERSEDED"

    def __str__(self):
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self != CounterOfferStatus.PENDING

    def can_transition_to(self, target: "CounterOfferStatus") -> bool:
        return target in COUNTER_OFFER_TRANSITIONS[self]


QUOTATION_TRANSITIONS = {
    QuotationStatus.PENDING: frozenset({
        QuotationStatus.ACCEPTED,
        QuotationStatus.REJECTED,
        QuotationStatus.EXPIRED,
    }),
    QuotationStatus.ACCEPTED: frozenset(),
    QuotationStatus.REJECTED: frozenset(),
    QuotationStatus.EXPIRED: frozenset(),
}

COUNTER_OFFER_TRANSITIONS = {
    CounterOfferStatus.PENDING: frozenset({
        CounterOfferStatus.ACCEPTED,
        CounterOfferStatus.REJECTED,
        CounterOfferStatus.EXPIRED,
        CounterOfferStatus.SUPERSEDED,
    }),
    CounterOfferStatus.ACCEPTED: frozenset(),
    CounterOfferStatus.REJECTED: frozenset(),
    CounterOfferStatus.EXPIRED: frozenset(),
    CounterOfferStatus.SUPERSEDED: frozenset(),
}


class CounterOfferDecision(str, Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"

    def __str__(self):
        return self.value


class EventType(str, Enum):
    BID_STATUS_CHANGED = "BID_STATUS_CHANGED"
    COUNTER_OFFER_STATUS_CHANGED = "COUNTER_OFFER_STATUS_CHANGED"

    def __str__(self):
        return self.value


class AuditAction(str, Enum):
    SUBMIT_QUOTATION = "submit_quotation"
    ACCEPT_QUOTATION = "accept_quotation"
    REJECT_QUOTATION = "reject_quotation"
    EXPIRE_QUOTATION = "expire_quotation"
    PROPOSE_COUNTER_OFFER = "propose_counter_offer"
    RESPOND_COUNTER_OFFER = "respond_counter_offer"
    SWEEP_EXPIRED = "sweep_expired"
    RETRY_EVENT = "retry_event"

    def __str__(self):
        return self.value
