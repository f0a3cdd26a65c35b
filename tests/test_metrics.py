"""Tests for metrics bookkeeping and the exposure Gini coefficient."""

import pytest

from marketplace import MarketState
from metrics import MetricsCollector, SimulationMetrics
from restaurant_api import calculate_gini_coefficient, settle


class TestGini:

    def test_equal_exposure_is_zero(self):
        assert calculate_gini_coefficient([1, 1, 1, 1]) == pytest.approx(0.0)

    def test_single_store_takes_everything(self):
        assert calculate_gini_coefficient([0, 0, 0, 10]) == pytest.approx(0.75)

    def test_order_does_not_matter(self):
        assert calculate_gini_coefficient([10, 0, 3, 0]) == pytest.approx(calculate_gini_coefficient([0, 0, 3, 10]))

    @pytest.mark.parametrize("values", [[], [0, 0, 0]])
    def test_degenerate_inputs(self, values):
        assert calculate_gini_coefficient(values) == 0.0

    def test_bounded(self):
        values = [5, 0, 2, 9, 1, 0, 40]
        gini = calculate_gini_coefficient(values)
        assert 0.0 <= gini <= (len(values) - 1) / len(values)


class TestEndOfDay:

    def test_revenue_waste_and_lost_revenue(self, make_store, add_pending):
        plenty = make_store(1, price=50.0, actual=7)
        short = make_store(2, price=80.0, actual=1)
        market = MarketState([plenty, short])
        for cid in range(3):
            add_pending(market, 1, cid)
        for cid in range(10, 13):
            add_pending(market, 2, cid, minute=cid)
        settle(market)

        collector = MetricsCollector()
        collector.log_end_of_day(market)
        m = collector.metrics

        # store 1 hands out 3+2+2, store 2 confirms one and cancels two
        assert m.bags_sold_per_store[1] == 7
        assert m.waste_per_store[1] == 0
        assert m.revenue_per_store[1] == pytest.approx(350.0)
        assert m.bags_sold_per_store[2] == 1
        assert m.bags_cancelled_per_store[2] == 2
        assert m.total_bags_sold == 8
        assert m.total_bags_cancelled == 2
        assert m.total_bags_unsold == 0
        assert m.total_revenue_generated == pytest.approx(430.0)
        assert m.total_revenue_lost == pytest.approx(160.0)

    def test_unreserved_inventory_is_waste(self, make_store, add_pending):
        store = make_store(1, actual=9)
        market = MarketState([store])
        add_pending(market, 1, 1)
        settle(market)

        collector = MetricsCollector()
        collector.log_end_of_day(market)

        assert collector.metrics.total_bags_sold == 3
        assert collector.metrics.total_bags_unsold == 6

    def test_fairness_uses_displayed_counts(self, make_store):
        market = MarketState([make_store(1), make_store(2)])
        collector = MetricsCollector()
        collector.log_stores_displayed([1, 1])
        assert collector.calculate_fairness_metrics(market) == pytest.approx(0.5)


class TestSimulationMetrics:

    def test_conversion_rate(self):
        collector = MetricsCollector()
        for _ in range(4):
            collector.log_customer_arrival()
        collector.log_customer_left()
        assert collector.metrics.conversion_rate == pytest.approx(75.0)

    def test_empty_rates_are_zero(self):
        m = SimulationMetrics()
        assert m.conversion_rate == 0.0
        assert m.revenue_efficiency == 0.0
        assert m.waste_rate == 0.0

    def test_add_accumulates_per_store(self):
        a = SimulationMetrics(total_bags_sold=3, total_customer_arrivals=5)
        a.times_displayed_per_store[1] += 2
        b = SimulationMetrics(total_bags_sold=4, total_customer_arrivals=5, customers_who_left=1)
        b.times_displayed_per_store[1] += 1
        b.times_displayed_per_store[2] += 4

        a.add(b)

        assert a.total_bags_sold == 7
        assert a.total_customer_arrivals == 10
        assert a.customers_who_left == 1
        assert dict(a.times_displayed_per_store) == {1: 3, 2: 4}

    def test_summary_keys(self):
        summary = SimulationMetrics().summary()
        assert set(summary) == {
            'bags_sold', 'bags_cancelled', 'waste', 'revenue', 'revenue_lost', 'revenue_efficiency',
            'arrivals', 'customers_left', 'reservations', 'conversion_rate', 'waste_rate', 'gini_exposure',
            'avg_final_rating',
        }
