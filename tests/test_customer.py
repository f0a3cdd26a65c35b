"""Tests for the customer model, personal utility and customer generation."""

import numpy as np
import pytest

from marketplace import Timestamp
from customer_api import (
    Customer,
    Weights,
    INELIGIBLE_SCORE,
    SEGMENTS,
    generate_customer,
    generate_customers,
    validate_segment,
)


class TestStoreScore:

    def test_utility_formula(self, make_customer, make_store):
        # 1.0*4.0 + 1.0*(200-100)/200 + 0.5*1 + 1.5*(1 - 0)
        customer = make_customer(wtp=200.0)
        store = make_store(1, rating=4.0, price=100.0)
        assert customer.calculate_store_score(store) == pytest.approx(6.5)

    def test_price_above_willingness_is_negative_term(self, make_customer, make_store):
        customer = make_customer(wtp=100.0)
        store = make_store(1, rating=4.0, price=150.0)
        assert customer.calculate_store_score(store) == pytest.approx(4.0 - 0.5 + 0.5 + 1.5)

    def test_distance_reduces_proximity_term(self, make_customer, make_store):
        customer = make_customer()
        near = make_store(1)
        half_way = make_store(2, lon=customer.longitude + 0.025)
        diff = customer.calculate_store_score(near) - customer.calculate_store_score(half_way)
        assert diff == pytest.approx(0.75)

    def test_beyond_travel_range_is_ineligible(self, make_customer, make_store):
        customer = make_customer()
        far = make_store(1, lon=customer.longitude + 0.06)
        assert customer.calculate_store_score(far) == INELIGIBLE_SCORE

    def test_novelty_uses_category_history(self, make_customer, make_store):
        customer = make_customer()
        bakery = make_store(1, business_type="bakery")
        cafe = make_store(2, business_type="cafe")
        customer.record_reservation_attempt(1, "bakery", Timestamp(9, 0))

        # novelty weight 0.5: untouched category keeps 0.5, bakery drops to 0.25
        assert customer.calculate_store_score(cafe) == pytest.approx(6.5)
        assert customer.calculate_store_score(bakery) == pytest.approx(6.25)


class TestCustomerState:

    def test_defaults(self):
        customer = Customer(1)
        assert customer.loyalty == pytest.approx(0.8)
        assert customer.category_preference == {"bakery": 1.0, "cafe": 1.0, "restaurant": 1.0}
        assert customer.churned is False
        assert customer.history.visits == 0

    def test_unknown_segment_rejected(self):
        with pytest.raises(ValueError):
            Customer(1, segment="vip")
        with pytest.raises(ValueError):
            validate_segment("")

    def test_segment_normalized(self):
        assert validate_segment(" Premium ") == "premium"

    def test_loyalty_bounded_by_cancellations(self, make_customer):
        customer = make_customer()
        for _ in range(20):
            customer.record_reservation_cancellation(3)
        assert customer.loyalty == 0.0
        assert customer.history.cancellations == 20
        assert customer.history.store_interactions[3].cancellations == 20

    def test_loyalty_bounded_above(self, make_customer):
        customer = make_customer()
        for _ in range(30):
            customer.update_loyalty(was_cancelled=False)
        assert customer.loyalty == 1.0

    def test_loyalty_stays_in_unit_interval_for_mixed_outcomes(self, make_customer):
        customer = make_customer()
        rng = np.random.RandomState(7)
        for _ in range(200):
            customer.update_loyalty(was_cancelled=bool(rng.randint(0, 2)))
            assert 0.0 <= customer.loyalty <= 1.0

    def test_reservation_attempt_recorded(self, make_customer):
        customer = make_customer()
        customer.record_reservation_attempt(4, "cafe", Timestamp(10, 30))
        assert customer.history.reservations == 1
        assert customer.history.last_reservation_time == Timestamp(10, 30)
        assert customer.history.categories_reserved == {"cafe": 1}
        assert customer.history.store_interactions[4].reservations == 1

    def test_success_raises_category_preference(self, make_customer):
        customer = make_customer()
        customer.record_reservation_attempt(4, "cafe", Timestamp(10, 30))
        customer.record_reservation_success(4, "cafe")
        assert customer.history.successes == 1
        assert customer.history.store_interactions[4].success_rate == pytest.approx(1.0)
        assert customer.category_preference["cafe"] == pytest.approx(1.1)
        assert customer.loyalty == pytest.approx(0.8)

    def test_reset_history(self, make_customer):
        customer = make_customer(loyalty=0.3)
        customer.record_visit()
        customer.churned = True
        customer.reset_history()
        assert customer.history.visits == 0
        assert customer.loyalty == pytest.approx(0.8)
        assert customer.churned is False


class TestCustomerGeneration:

    def test_same_seed_same_customers(self, make_store):
        stores = [make_store(1), make_store(2)]
        a = generate_customers(10, stores, np.random.RandomState(3))
        b = generate_customers(10, stores, np.random.RandomState(3))
        assert [c.to_dict() for c in a] == [c.to_dict() for c in b]

    def test_segment_bands(self):
        rng = np.random.RandomState(11)
        for i in range(200):
            customer = generate_customer(i, [], rng)
            assert customer.segment in SEGMENTS
            assert 31.2 <= customer.longitude <= 31.3
            assert 30.0 <= customer.latitude <= 30.1
            if customer.segment == "budget":
                assert 80 <= customer.willingness_to_pay < 120
                assert 2.0 <= customer.leaving_threshold < 5.0
            elif customer.segment == "regular":
                assert 120 <= customer.willingness_to_pay < 180
                assert 3.0 <= customer.leaving_threshold < 7.0
            else:
                assert 180 <= customer.willingness_to_pay < 260
                assert 4.0 <= customer.leaving_threshold < 8.0

    def test_store_valuations_drawn_per_store(self, make_store):
        customer = generate_customer(0, [make_store(1), make_store(5)], np.random.RandomState(0))
        assert set(customer.store_valuations) == {1, 5}
        assert all(0.0 <= v <= 5.0 for v in customer.store_valuations.values())

    def test_ids_start_at_offset(self):
        customers = generate_customers(3, [], np.random.RandomState(0), start_id=10)
        assert [c.customer_id for c in customers] == [10, 11, 12]
