# -*- coding: utf-8 -*-
"""
Restaurant API Module
Handles all restaurant/store-related functionality including:
- Restaurant class definition
- Default store roster and business type inference
- Daily inventory sampling
- End-of-day reconciliation of reservations against real inventory
- Exposure fairness (Gini coefficient)
"""

import logging
import numpy as np
from typing import List, Dict, Optional, TYPE_CHECKING

from marketplace import Reservation

if TYPE_CHECKING:
    from marketplace import MarketState

logger = logging.getLogger(__name__)

MIN_RATING = 1.0
MAX_RATING = 5.0
CONFIRMATION_RATING_BOOST = 0.01
CANCELLATION_RATING_PENALTY = 0.05
DEFAULT_MAX_BAGS_PER_CUSTOMER = 3

# realized inventory as a fraction of the forecast
INVENTORY_VARIANCE = (0.8, 1.2)

BAKERY_KEYWORDS = ("bakery", "bread", "donut", "krispy", "dunkin", "cinnabon", "greggs", "panera")
CAFE_KEYWORDS = ("coffee", "starbucks", "cafe", "costa", "pret", "tim hortons", "caribou")


class Restaurant:
    """Represents a restaurant/store selling surprise bags in the marketplace"""

    def __init__(self, business_id: int, business_name: str, branch: str = "",
                 estimated_bags: int = 0, general_ranking: float = 3.0,
                 price_per_bag: float = 0.0, longitude: float = 0.0, latitude: float = 0.0,
                 business_type: str = "restaurant",
                 max_bags_per_customer: int = DEFAULT_MAX_BAGS_PER_CUSTOMER):
        self.business_id = business_id
        self.business_name = business_name
        self.branch = branch
        self.business_type = business_type

        self.estimated_bags = estimated_bags  # forecast, drives display decisions
        self.actual_bags = 0  # realized inventory, only read at settlement
        self.price_per_bag = price_per_bag
        self.longitude = longitude
        self.latitude = latitude

        self.general_ranking = general_ranking
        self.initial_rating = general_ranking
        self.rating_at_day_start = general_ranking

        self.reserved_count = 0
        self.has_inventory = True
        self.max_bags_per_customer = max_bags_per_customer

        self.total_orders_confirmed = 0
        self.total_orders_cancelled = 0
        self.daily_orders_confirmed = 0
        self.daily_orders_cancelled = 0

    @property
    def rating(self) -> float:
        return self.general_ranking

    @property
    def unsold_bags(self) -> int:
        """Forecast bags not yet claimed by a reservation today."""
        return max(0, self.estimated_bags - self.reserved_count)

    def can_accept_reservation(self) -> bool:
        return self.has_inventory and self.reserved_count < self.estimated_bags

    def set_actual_inventory(self, bags: int) -> None:
        self.actual_bags = max(0, bags)

    def sample_actual_bags(self, rng: np.random.RandomState) -> int:
        """Draw today's realized inventory around the forecast."""
        low, high = INVENTORY_VARIANCE
        self.set_actual_inventory(int(self.estimated_bags * rng.uniform(low, high)))
        return self.actual_bags

    def confirm_order(self) -> None:
        self.total_orders_confirmed += 1
        self.daily_orders_confirmed += 1
        self.general_ranking = min(MAX_RATING, self.general_ranking + CONFIRMATION_RATING_BOOST)

    def cancel_order(self) -> None:
        # cancellations cost five times what a confirmation earns
        self.total_orders_cancelled += 1
        self.daily_orders_cancelled += 1
        self.general_ranking = max(MIN_RATING, self.general_ranking - CANCELLATION_RATING_PENALTY)

    def reset_daily(self) -> None:
        """Start a new trading day with fresh counters."""
        self.rating_at_day_start = self.general_ranking
        self.daily_orders_confirmed = 0
        self.daily_orders_cancelled = 0
        self.reserved_count = 0
        self.has_inventory = True

    def to_dict(self) -> Dict:
        return {
            'store_id': self.business_id,
            'store_name': self.business_name,
            'branch': self.branch,
            'business_type': self.business_type,
            'average_bags_at_9AM': self.estimated_bags,
            'average_overall_rating': round(self.general_ranking, 4),
            'price': self.price_per_bag,
            'longitude': self.longitude,
            'latitude': self.latitude,
        }

    def __repr__(self) -> str:
        return (f"Restaurant(id={self.business_id}, name={self.business_name!r}, "
                f"rating={self.general_ranking:.2f}, est={self.estimated_bags}, "
                f"reserved={self.reserved_count}, actual={self.actual_bags})")


def infer_business_type(store_name: str) -> str:
    """Guess a store's category from keywords in its name."""
    name = store_name.lower()
    if any(keyword in name for keyword in BAKERY_KEYWORDS):
        return "bakery"
    if any(keyword in name for keyword in CAFE_KEYWORDS):
        return "cafe"
    return "restaurant"


def load_default_restaurants() -> List[Restaurant]:
    """Built-in roster of 15 Cairo stores used when no stores file is given."""
    rows = [
        (1, "Krispy Kreme", "Zamalek", 10, 4.8, 80.0, 31.22, 30.05, "bakery"),
        (2, "TBS Pizza", "New Cairo", 10, 4.2, 150.0, 31.25, 30.08, "restaurant"),
        (3, "Starbucks", "Zamalek", 15, 4.5, 100.0, 31.23, 30.06, "cafe"),
        (4, "Paul Bakery", "New Cairo", 12, 4.6, 90.0, 31.26, 30.09, "bakery"),
        (5, "Costa Coffee", "Zamalek", 8, 4.3, 85.0, 31.24, 30.07, "cafe"),
        (6, "Greggs", "New Cairo", 20, 4.0, 70.0, 31.27, 30.10, "bakery"),
        (7, "Pizza Hut", "Zamalek", 14, 4.1, 140.0, 31.21, 30.04, "restaurant"),
        (8, "Pret A Manger", "New Cairo", 18, 4.4, 95.0, 31.28, 30.11, "cafe"),
        (9, "Subway", "Zamalek", 16, 3.9, 110.0, 31.20, 30.03, "restaurant"),
        (10, "Tim Hortons", "New Cairo", 10, 4.2, 80.0, 31.29, 30.12, "cafe"),
        (11, "Dunkin Donuts", "Zamalek", 12, 4.3, 75.0, 31.19, 30.02, "bakery"),
        (12, "Domino's Pizza", "New Cairo", 15, 4.0, 130.0, 31.30, 30.13, "restaurant"),
        (13, "Cinnabon", "Zamalek", 9, 4.4, 85.0, 31.18, 30.01, "bakery"),
        (14, "Caribou Coffee", "New Cairo", 11, 4.1, 90.0, 31.31, 30.14, "cafe"),
        (15, "Panera Bread", "Zamalek", 13, 4.2, 95.0, 31.17, 30.00, "restaurant"),
    ]
    return [Restaurant(*row) for row in rows]


def initialize_day(restaurants: List[Restaurant], rng: np.random.RandomState,
                   actual_inventories: Optional[Dict[int, int]] = None) -> None:
    """
    Reset daily state of every store and set its realized inventory.

    Args:
        restaurants: Stores to reset
        rng: Run-scoped random stream
        actual_inventories: Optional fixed store_id -> actual bags (skips sampling)
    """
    for restaurant in restaurants:
        restaurant.reset_daily()
        if actual_inventories is not None and restaurant.business_id in actual_inventories:
            restaurant.set_actual_inventory(actual_inventories[restaurant.business_id])
        else:
            restaurant.sample_actual_bags(rng)


def _confirm(reservation: Reservation, bags: int, restaurant: Restaurant,
             market_state: "MarketState") -> None:
    reservation.confirm(bags)
    customer = market_state.get_customer(reservation.customer_id)
    if customer is not None:
        customer.record_reservation_success(restaurant.business_id, restaurant.business_type)
    restaurant.confirm_order()


def _cancel(reservation: Reservation, restaurant: Restaurant,
            market_state: "MarketState") -> None:
    reservation.cancel()
    customer = market_state.get_customer(reservation.customer_id)
    if customer is not None:
        customer.record_reservation_cancellation(restaurant.business_id)
    restaurant.cancel_order()


def settle_restaurant(restaurant: Restaurant, market_state: "MarketState") -> Dict:
    """
    Settle one store's pending reservations against its realized inventory.

    Abundance: everyone is confirmed with an equal share capped at
    max_bags_per_customer, leftovers handed out one at a time in arrival order.
    Scarcity: the earliest `actual_bags` reservations get one bag each and the
    rest are cancelled.

    Returns:
        Dict with confirmed, cancelled and bags_given counts
    """
    pending = [r for r in market_state.reservations
               if r.restaurant_id == restaurant.business_id and r.is_pending]
    # sorted() is stable, equal times keep creation order
    pending = sorted(pending, key=lambda r: r.reservation_time.to_minutes())

    k = len(pending)
    actual = restaurant.actual_bags
    summary = {'confirmed': 0, 'cancelled': 0, 'bags_given': 0}
    if k == 0:
        return summary

    if actual >= k:
        bags_per_customer = min(restaurant.max_bags_per_customer, actual // k)
        extra_bags = actual - bags_per_customer * k
        for reservation in pending:
            bags = bags_per_customer
            if extra_bags > 0 and bags < restaurant.max_bags_per_customer:
                bags += 1
                extra_bags -= 1
            _confirm(reservation, bags, restaurant, market_state)
            summary['confirmed'] += 1
            summary['bags_given'] += bags
    else:
        for reservation in pending[:actual]:
            _confirm(reservation, 1, restaurant, market_state)
            summary['confirmed'] += 1
            summary['bags_given'] += 1
        for reservation in pending[actual:]:
            _cancel(reservation, restaurant, market_state)
            summary['cancelled'] += 1

    logger.debug(f"{restaurant.business_name}: pending={k} actual={actual} "
                 f"confirmed={summary['confirmed']} cancelled={summary['cancelled']} "
                 f"bags_given={summary['bags_given']}")
    return summary


def settle(market_state: "MarketState") -> Dict[int, Dict]:
    """
    End-of-day reconciliation for every store, independently.

    Returns:
        Dict of store_id -> settlement summary
    """
    results = {}
    for restaurant in market_state.restaurants:
        results[restaurant.business_id] = settle_restaurant(restaurant, market_state)
    return results


def calculate_gini_coefficient(values: List[float]) -> float:
    """
    Calculate Gini coefficient for inequality measurement.
    Returns 0 for perfect equality, approaching (n-1)/n when one entry holds everything.
    Zero entries count: a store never shown is part of the inequality.
    """
    if not values:
        return 0.0

    sorted_values = sorted(values)
    total = float(sum(sorted_values))
    if total == 0:
        return 0.0

    n = len(sorted_values)
    weighted_sum = sum((i + 1) * value for i, value in enumerate(sorted_values))
    return (2.0 * weighted_sum) / (n * total) - (n + 1.0) / n
