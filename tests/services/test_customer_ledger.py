"""
Tests for CustomerLedger: incremental aggregate maintenance and overrides.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from ops_kernel.domain.customers import (
    CancelledOrderPolicy,
    CustomerAggregates,
    CustomerPolicy,
    CustomerType,
    DemotionPolicy,
)
from ops_kernel.exceptions import CustomerNotFoundError
from ops_kernel.services.customer_ledger import CustomerLedger

ORDER_DATE = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def _ledger(session, clock, **policy_kwargs) -> CustomerLedger:
    return CustomerLedger(
        session,
        policy=CustomerPolicy(**policy_kwargs),
        clock=clock,
        auto_commit=True,
    )


class TestCreateCustomer:

    def test_new_customer_has_zero_aggregates(self, make_customer):
        customer = make_customer("Ada Lovelace", phone="555-0100")

        agg = customer.aggregates
        assert agg.total_purchases == Decimal("0")
        assert agg.total_orders == 0
        assert agg.outstanding_balance == Decimal("0")
        assert agg.loyalty_points == 0
        assert agg.customer_type == CustomerType.NEW
        assert agg.first_order_date is None
        assert customer.type_locked is False

    def test_get_unknown_customer(self, customer_ledger, org_id):
        with pytest.raises(CustomerNotFoundError) as exc_info:
            customer_ledger.get_customer(org_id, uuid4())
        assert exc_info.value.code == "CUSTOMER_NOT_FOUND"

    def test_customer_invisible_to_other_organization(self, customer_ledger, make_customer):
        customer = make_customer()
        with pytest.raises(CustomerNotFoundError):
            customer_ledger.get_customer("org-other", customer.customer_id)


class TestOrderCreated:

    def test_large_first_order_promotes_to_vip(self, customer_ledger, org_id, make_customer):
        customer = make_customer()

        updated = customer_ledger.apply_order_created(
            org_id,
            customer.customer_id,
            amount=Decimal("60000"),
            paid_amount=Decimal("0"),
            outstanding=Decimal("60000"),
            order_date=ORDER_DATE,
        )

        agg = updated.aggregates
        assert agg.total_purchases == Decimal("60000")
        assert agg.total_orders == 1
        assert agg.outstanding_balance == Decimal("60000")
        assert agg.loyalty_points == 600
        assert agg.customer_type == CustomerType.VIP
        assert agg.first_order_date == ORDER_DATE
        assert agg.last_order_date == ORDER_DATE

    def test_small_order_promotes_to_regular(self, customer_ledger, org_id, make_customer):
        customer = make_customer()

        updated = customer_ledger.apply_order_created(
            org_id, customer.customer_id, Decimal("250"), Decimal("250"), Decimal("0"), ORDER_DATE,
        )

        assert updated.aggregates.customer_type == CustomerType.REGULAR
        assert updated.aggregates.loyalty_points == 2

    def test_loyalty_points_floor(self, customer_ledger, org_id, make_customer):
        customer = make_customer()
        updated = customer_ledger.apply_order_created(
            org_id, customer.customer_id, Decimal("199.99"), Decimal("0"), Decimal("199.99"), ORDER_DATE,
        )
        assert updated.aggregates.loyalty_points == 1

    def test_order_dates_track_earliest_and_latest(self, customer_ledger, org_id, make_customer):
        customer = make_customer()
        later = ORDER_DATE + timedelta(days=3)
        earlier = ORDER_DATE - timedelta(days=3)

        for when in (ORDER_DATE, later, earlier):
            updated = customer_ledger.apply_order_created(
                org_id, customer.customer_id, Decimal("10"), Decimal("10"), Decimal("0"), when,
            )

        assert updated.aggregates.first_order_date == earlier
        assert updated.aggregates.last_order_date == later
        assert updated.aggregates.total_orders == 3

    def test_locked_type_is_kept(self, customer_ledger, org_id, make_customer):
        customer = make_customer()
        customer_ledger.set_type_override(org_id, customer.customer_id, CustomerType.INACTIVE)

        updated = customer_ledger.apply_order_created(
            org_id, customer.customer_id, Decimal("90000"), Decimal("0"), Decimal("90000"), ORDER_DATE,
        )

        assert updated.aggregates.customer_type == CustomerType.INACTIVE
        assert updated.aggregates.loyalty_points == 900

    def test_unknown_customer(self, customer_ledger, org_id):
        with pytest.raises(CustomerNotFoundError):
            customer_ledger.apply_order_created(
                org_id, uuid4(), Decimal("1"), Decimal("0"), Decimal("1"), ORDER_DATE,
            )


class TestOrderCancelled:

    def _vip(self, ledger, org_id, make_customer):
        customer = make_customer()
        ledger.apply_order_created(
            org_id, customer.customer_id, Decimal("60000"), Decimal("0"), Decimal("60000"), ORDER_DATE,
        )
        return customer

    def test_retain_on_cancel_keeps_count_and_tier(self, customer_ledger, org_id, make_customer):
        customer = self._vip(customer_ledger, org_id, make_customer)

        updated = customer_ledger.apply_order_cancelled(
            org_id, customer.customer_id, amount=Decimal("60000"), outstanding=Decimal("60000"),
        )

        agg = updated.aggregates
        assert agg.total_purchases == Decimal("0")
        assert agg.outstanding_balance == Decimal("0")
        assert agg.total_orders == 1
        assert agg.loyalty_points == 0
        assert agg.customer_type == CustomerType.VIP

    def test_exclude_cancelled_decrements_count(
        self, session, deterministic_clock, org_id, make_customer,
    ):
        ledger = _ledger(
            session, deterministic_clock,
            cancelled_order_policy=CancelledOrderPolicy.EXCLUDE_CANCELLED,
        )
        customer = self._vip(ledger, org_id, make_customer)

        updated = ledger.apply_order_cancelled(
            org_id, customer.customer_id, Decimal("60000"), Decimal("60000"),
        )

        assert updated.aggregates.total_orders == 0
        assert updated.aggregates.customer_type == CustomerType.VIP

    def test_always_demote_rederives_tier(
        self, session, deterministic_clock, org_id, make_customer,
    ):
        ledger = _ledger(session, deterministic_clock, demotion_policy=DemotionPolicy.ALWAYS)
        customer = self._vip(ledger, org_id, make_customer)

        updated = ledger.apply_order_cancelled(
            org_id, customer.customer_id, Decimal("60000"), Decimal("60000"),
        )

        assert updated.aggregates.customer_type == CustomerType.REGULAR

    def test_totals_never_go_negative(self, customer_ledger, org_id, make_customer):
        customer = make_customer()

        updated = customer_ledger.apply_order_cancelled(
            org_id, customer.customer_id, Decimal("500"), Decimal("500"),
        )

        assert updated.aggregates.total_purchases == Decimal("0")
        assert updated.aggregates.outstanding_balance == Decimal("0")


class TestPayment:

    def test_payment_reduces_outstanding(self, customer_ledger, org_id, make_customer):
        customer = make_customer()
        customer_ledger.apply_order_created(
            org_id, customer.customer_id, Decimal("1000"), Decimal("0"), Decimal("1000"), ORDER_DATE,
        )

        updated = customer_ledger.apply_payment(org_id, customer.customer_id, Decimal("400"))

        assert updated.aggregates.outstanding_balance == Decimal("600")
        assert updated.aggregates.total_purchases == Decimal("1000")

    def test_overpayment_clamps_at_zero(self, customer_ledger, org_id, make_customer):
        customer = make_customer()
        updated = customer_ledger.apply_payment(org_id, customer.customer_id, Decimal("50"))
        assert updated.aggregates.outstanding_balance == Decimal("0")


class TestTypeOverride:

    def test_override_locks_tier(self, customer_ledger, org_id, make_customer):
        customer = make_customer()

        updated = customer_ledger.set_type_override(org_id, customer.customer_id, CustomerType.VIP)

        assert updated.type_locked is True
        assert updated.aggregates.customer_type == CustomerType.VIP

    def test_clearing_override_rederives(self, customer_ledger, org_id, make_customer):
        customer = make_customer()
        customer_ledger.apply_order_created(
            org_id, customer.customer_id, Decimal("100"), Decimal("100"), Decimal("0"), ORDER_DATE,
        )
        customer_ledger.set_type_override(org_id, customer.customer_id, CustomerType.INACTIVE)

        updated = customer_ledger.set_type_override(org_id, customer.customer_id, None)

        assert updated.type_locked is False
        assert updated.aggregates.customer_type == CustomerType.REGULAR


class TestOverwriteAggregates:

    def _aggregates(self, **overrides) -> CustomerAggregates:
        values = dict(
            total_purchases=Decimal("1500"),
            total_orders=2,
            outstanding_balance=Decimal("300"),
            loyalty_points=15,
            customer_type=CustomerType.REGULAR,
            first_order_date=ORDER_DATE,
            last_order_date=ORDER_DATE + timedelta(days=1),
        )
        values.update(overrides)
        return CustomerAggregates(**values)

    def test_overwrite_reports_change_then_no_change(self, customer_ledger, org_id, make_customer):
        customer = make_customer()
        aggregates = self._aggregates()

        assert customer_ledger.overwrite_aggregates(org_id, customer.customer_id, aggregates) is True
        assert customer_ledger.overwrite_aggregates(org_id, customer.customer_id, aggregates) is False

        stored = customer_ledger.get_customer(org_id, customer.customer_id).aggregates
        assert stored.total_purchases == Decimal("1500")
        assert stored.total_orders == 2
        assert stored.customer_type == CustomerType.REGULAR

    def test_overwrite_keeps_locked_tier(self, customer_ledger, org_id, make_customer):
        customer = make_customer()
        customer_ledger.set_type_override(org_id, customer.customer_id, CustomerType.INACTIVE)

        customer_ledger.overwrite_aggregates(
            org_id, customer.customer_id, self._aggregates(customer_type=CustomerType.VIP),
        )

        stored = customer_ledger.get_customer(org_id, customer.customer_id)
        assert stored.aggregates.customer_type == CustomerType.INACTIVE
        assert stored.aggregates.total_purchases == Decimal("1500")


class TestPolicyValidation:

    @pytest.mark.parametrize("field", ["vip_threshold", "loyalty_points_rate"])
    def test_non_positive_rejected(self, field):
        with pytest.raises(ValueError):
            CustomerPolicy(**{field: Decimal("0")})
