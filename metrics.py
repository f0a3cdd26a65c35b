# -*- coding: utf-8 -*-
"""
Metrics Module
Sales, waste, revenue and exposure-fairness bookkeeping for simulation runs.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, TYPE_CHECKING

from marketplace import ReservationStatus
from restaurant_api import calculate_gini_coefficient

if TYPE_CHECKING:
    from marketplace import MarketState


def _counter() -> Dict[int, float]:
    return defaultdict(int)


@dataclass
class SimulationMetrics:
    """Totals for one day, or aggregated over a run."""

    total_bags_sold: int = 0
    total_bags_cancelled: int = 0
    total_bags_unsold: int = 0
    total_revenue_generated: float = 0.0
    total_revenue_lost: float = 0.0
    customers_who_left: int = 0
    total_customer_arrivals: int = 0
    reservations_made: int = 0
    gini_coefficient_exposure: float = 0.0
    average_final_rating: float = 0.0

    bags_sold_per_store: Dict[int, int] = field(default_factory=_counter)
    bags_cancelled_per_store: Dict[int, int] = field(default_factory=_counter)
    waste_per_store: Dict[int, int] = field(default_factory=_counter)
    revenue_per_store: Dict[int, float] = field(default_factory=_counter)
    times_displayed_per_store: Dict[int, int] = field(default_factory=_counter)

    @property
    def conversion_rate(self) -> float:
        """Percent of arrivals that did not leave empty handed."""
        if self.total_customer_arrivals == 0:
            return 0.0
        return (self.total_customer_arrivals - self.customers_who_left) / self.total_customer_arrivals * 100.0

    @property
    def revenue_efficiency(self) -> float:
        """Percent of reserved revenue actually realized."""
        potential = self.total_revenue_generated + self.total_revenue_lost
        if self.total_customer_arrivals == 0 or potential == 0:
            return 0.0
        return self.total_revenue_generated / potential * 100.0

    @property
    def waste_rate(self) -> float:
        handled = self.total_bags_sold + self.total_bags_unsold
        return self.total_bags_unsold / handled * 100.0 if handled > 0 else 0.0

    def add(self, other: "SimulationMetrics") -> None:
        """Accumulate another day's totals into this one (Gini is not additive)."""
        self.total_bags_sold += other.total_bags_sold
        self.total_bags_cancelled += other.total_bags_cancelled
        self.total_bags_unsold += other.total_bags_unsold
        self.total_revenue_generated += other.total_revenue_generated
        self.total_revenue_lost += other.total_revenue_lost
        self.customers_who_left += other.customers_who_left
        self.total_customer_arrivals += other.total_customer_arrivals
        self.reservations_made += other.reservations_made
        for mine, theirs in (
            (self.bags_sold_per_store, other.bags_sold_per_store),
            (self.bags_cancelled_per_store, other.bags_cancelled_per_store),
            (self.waste_per_store, other.waste_per_store),
            (self.revenue_per_store, other.revenue_per_store),
            (self.times_displayed_per_store, other.times_displayed_per_store),
        ):
            for store_id, value in theirs.items():
                mine[store_id] += value

    def summary(self) -> Dict:
        return {
            'bags_sold': self.total_bags_sold,
            'bags_cancelled': self.total_bags_cancelled,
            'waste': self.total_bags_unsold,
            'revenue': round(self.total_revenue_generated, 2),
            'revenue_lost': round(self.total_revenue_lost, 2),
            'revenue_efficiency': round(self.revenue_efficiency, 2),
            'arrivals': self.total_customer_arrivals,
            'customers_left': self.customers_who_left,
            'reservations': self.reservations_made,
            'conversion_rate': round(self.conversion_rate, 2),
            'waste_rate': round(self.waste_rate, 2),
            'gini_exposure': round(self.gini_coefficient_exposure, 4),
            'avg_final_rating': round(self.average_final_rating, 3),
        }


class MetricsCollector:
    """Collects one day's metrics while the day runs, then reads the settled market."""

    def __init__(self):
        self.metrics = SimulationMetrics()

    def reset(self) -> None:
        self.metrics = SimulationMetrics()

    def log_customer_arrival(self) -> None:
        self.metrics.total_customer_arrivals += 1

    def log_stores_displayed(self, store_ids: List[int]) -> None:
        for store_id in store_ids:
            self.metrics.times_displayed_per_store[store_id] += 1

    def log_customer_left(self) -> None:
        self.metrics.customers_who_left += 1

    def log_reservation(self) -> None:
        self.metrics.reservations_made += 1

    def log_end_of_day(self, market_state: "MarketState") -> None:
        """Compute sales, cancellations, revenue and waste from the settled reservation log."""
        m = self.metrics
        m.total_bags_sold = 0
        m.total_bags_cancelled = 0
        m.total_bags_unsold = 0
        m.total_revenue_generated = 0.0
        m.total_revenue_lost = 0.0

        for restaurant in market_state.restaurants:
            store_id = restaurant.business_id
            bags_given = 0
            cancelled = 0
            revenue = 0.0
            for reservation in market_state.reservations_for(store_id):
                if reservation.status == ReservationStatus.CONFIRMED:
                    bags_given += reservation.bags_received
                    revenue += restaurant.price_per_bag * reservation.bags_received
                elif reservation.status == ReservationStatus.CANCELLED:
                    cancelled += 1
                    m.total_revenue_lost += restaurant.price_per_bag

            waste = max(0, restaurant.actual_bags - bags_given)
            m.bags_sold_per_store[store_id] = bags_given
            m.bags_cancelled_per_store[store_id] = cancelled
            m.waste_per_store[store_id] = waste
            m.revenue_per_store[store_id] = revenue

            m.total_bags_sold += bags_given
            m.total_bags_cancelled += cancelled
            m.total_bags_unsold += waste
            m.total_revenue_generated += revenue

    def calculate_fairness_metrics(self, market_state: "MarketState") -> float:
        exposures = [self.metrics.times_displayed_per_store[r.business_id] for r in market_state.restaurants]
        self.metrics.gini_coefficient_exposure = calculate_gini_coefficient(exposures)
        return self.metrics.gini_coefficient_exposure
