# -*- coding: utf-8 -*-
"""
Customer API Module
Handles all customer-related functionality including:
- Customer class definition and interaction history
- Personal utility of a store for a customer
- Synthetic customer generation by segment
- Arrival decision: display, score, leave or reserve
"""

import logging
import numpy as np
from typing import List, Dict, Optional, Union, TYPE_CHECKING
from scipy.special import softmax

from marketplace import Reservation, Timestamp, MAX_TRAVEL_DISTANCE, flat_distance
from ranking_algorithm import RankingStrategy, select_displayed

if TYPE_CHECKING:
    from marketplace import MarketState
    from restaurant_api import Restaurant

logger = logging.getLogger(__name__)

SEGMENTS = ("budget", "regular", "premium")
CATEGORIES = ("bakery", "cafe", "restaurant")

DEFAULT_LOYALTY = 0.8
LOYALTY_CANCEL_PENALTY = 0.1
LOYALTY_SUCCESS_BOOST = 0.05
CATEGORY_PREFERENCE_STEP = 0.1

# utility floor for stores out of travel range or missing from the store table
INELIGIBLE_SCORE = -100.0
# adjusted scores at or below this are treated as too far
TOO_FAR_CUTOFF = -50.0
SOFTMAX_TEMPERATURE = 2.0


def validate_segment(segment: str) -> str:
    """Normalize a segment name, raising ValueError for anything unknown."""
    normalized = str(segment).strip().lower()
    if normalized not in SEGMENTS:
        raise ValueError(f"Unknown customer segment {segment!r}; expected one of {SEGMENTS}")
    return normalized


class Weights:
    """How much a customer cares about rating, price and trying new things."""

    def __init__(self, rating_w: float = 1.0, price_w: float = 1.0, novelty_w: float = 0.5):
        self.rating_w = rating_w
        self.price_w = price_w
        self.novelty_w = novelty_w

    def __repr__(self) -> str:
        return f"Weights(rating_w={self.rating_w}, price_w={self.price_w}, novelty_w={self.novelty_w})"


class StoreInteraction:
    def __init__(self):
        self.reservations = 0
        self.successes = 0
        self.cancellations = 0

    @property
    def success_rate(self) -> float:
        return self.successes / self.reservations if self.reservations > 0 else 0.0

    @property
    def cancellation_rate(self) -> float:
        return self.cancellations / self.reservations if self.reservations > 0 else 0.0


class CustomerHistory:
    """Additive record of everything a customer has done on the platform."""

    def __init__(self):
        self.visits = 0
        self.reservations = 0
        self.successes = 0
        self.cancellations = 0
        self.last_reservation_time = Timestamp()
        self.categories_reserved: Dict[str, int] = {}
        self.store_interactions: Dict[int, StoreInteraction] = {}

    def interaction(self, store_id: int) -> StoreInteraction:
        """Per-store record, created on first use."""
        if store_id not in self.store_interactions:
            self.store_interactions[store_id] = StoreInteraction()
        return self.store_interactions[store_id]

    def has_purchased_from(self, store_id: int) -> bool:
        interaction = self.store_interactions.get(store_id)
        return interaction is not None and interaction.reservations > 0


class Customer:
    """Represents a customer in the marketplace"""

    def __init__(self, customer_id: int, longitude: float = 0.0, latitude: float = 0.0,
                 name: Optional[str] = None, segment: str = "regular",
                 willingness_to_pay: float = 200.0, weights: Optional[Weights] = None,
                 leaving_threshold: float = 5.0, loyalty: float = DEFAULT_LOYALTY):
        self.customer_id = customer_id
        self.name = name or f"Customer_{customer_id}"
        self.longitude = longitude
        self.latitude = latitude
        self.segment = validate_segment(segment)
        self.willingness_to_pay = willingness_to_pay
        self.weights = weights or Weights()

        self.loyalty = loyalty
        self.leaving_threshold = leaving_threshold
        self.churned = False
        self.history = CustomerHistory()

        self.category_preference: Dict[str, float] = {c: 1.0 for c in CATEGORIES}
        # externally supplied store_id -> valuation
        self.store_valuations: Dict[int, float] = {}

        # stores shown on the most recent arrival
        self.displayed_stores: List[int] = []

    @property
    def is_budget(self) -> bool:
        return self.segment == "budget"

    @property
    def is_premium(self) -> bool:
        return self.segment == "premium"

    def distance_to(self, store: "Restaurant") -> float:
        return flat_distance(self.longitude, self.latitude, store.longitude, store.latitude)

    def calculate_store_score(self, store: "Restaurant") -> float:
        """
        Personal utility of a store.

        Args:
            store: Store to evaluate

        Returns:
            Weighted sum of rating, price headroom, novelty and proximity,
            or INELIGIBLE_SCORE when the store is beyond travel range
        """
        distance = self.distance_to(store)
        if distance > MAX_TRAVEL_DISTANCE:
            return INELIGIBLE_SCORE

        # negative when the bag costs more than the customer wants to pay
        price_term = (self.willingness_to_pay - store.price_per_bag) / self.willingness_to_pay

        times_reserved = self.history.categories_reserved.get(store.business_type, 0)
        novelty = 1.0 if times_reserved == 0 else 1.0 / (1 + times_reserved)

        proximity = (1.0 - distance / MAX_TRAVEL_DISTANCE) * 1.5

        return (self.weights.rating_w * store.general_ranking
                + self.weights.price_w * price_term
                + self.weights.novelty_w * novelty
                + proximity)

    def update_loyalty(self, was_cancelled: bool) -> None:
        if was_cancelled:
            self.loyalty = max(0.0, self.loyalty - LOYALTY_CANCEL_PENALTY)
        else:
            self.loyalty = min(1.0, self.loyalty + LOYALTY_SUCCESS_BOOST)

    def update_category_preference(self, category: str) -> None:
        self.category_preference[category] = (
            self.category_preference.get(category, 0.0) + CATEGORY_PREFERENCE_STEP
        )

    def record_visit(self) -> None:
        self.history.visits += 1

    def record_reservation_attempt(self, store_id: int, category: str, time: Timestamp) -> None:
        self.history.reservations += 1
        self.history.last_reservation_time = time
        self.history.categories_reserved[category] = self.history.categories_reserved.get(category, 0) + 1
        self.history.interaction(store_id).reservations += 1

    def record_reservation_success(self, store_id: int, category: str) -> None:
        self.history.successes += 1
        self.history.interaction(store_id).successes += 1
        self.update_category_preference(category)

    def record_reservation_cancellation(self, store_id: int) -> None:
        self.history.cancellations += 1
        self.history.interaction(store_id).cancellations += 1
        self.update_loyalty(was_cancelled=True)

    def reset_history(self) -> None:
        """Fresh start for an independent multi-day run."""
        self.history = CustomerHistory()
        self.loyalty = DEFAULT_LOYALTY
        self.churned = False
        self.displayed_stores = []

    def to_dict(self) -> Dict:
        record = {
            'customer_id': self.customer_id,
            'customer_name': self.name,
            'longitude': self.longitude,
            'latitude': self.latitude,
            'segment': self.segment,
            'willingness_to_pay': self.willingness_to_pay,
            'rating_weight': self.weights.rating_w,
            'price_weight': self.weights.price_w,
            'novelty_weight': self.weights.novelty_w,
            'loyalty': self.loyalty,
            'leaving_threshold': self.leaving_threshold,
        }
        for store_id, valuation in sorted(self.store_valuations.items()):
            record[f'store{store_id}_valuation'] = valuation
        return record

    def __repr__(self) -> str:
        return (f"Customer(id={self.customer_id}, segment={self.segment}, "
                f"wtp={self.willingness_to_pay:.0f}, loyalty={self.loyalty:.2f}, churned={self.churned})")


# --------------------------------------------------------------------------
# Segment defaults
# --------------------------------------------------------------------------

def segment_willingness_to_pay(segment: str, rng: np.random.RandomState) -> float:
    if segment == "budget":
        return 80.0 + rng.randint(0, 40)
    if segment == "regular":
        return 120.0 + rng.randint(0, 60)
    return 180.0 + rng.randint(0, 80)


def segment_weights(segment: str, rng: np.random.RandomState) -> Weights:
    """Draw decision weights from the segment's band."""
    if segment == "budget":
        base = (0.5, 1.5, 0.3)
    elif segment == "regular":
        base = (1.0, 1.0, 0.5)
    else:
        base = (1.5, 0.5, 0.8)
    rating_w, price_w, novelty_w = (b + rng.randint(0, 100) / 200.0 for b in base)
    return Weights(rating_w, price_w, novelty_w)


def segment_leaving_threshold(segment: str, rng: np.random.RandomState) -> float:
    if segment == "budget":
        return 2.0 + rng.randint(0, 30) / 10.0
    if segment == "regular":
        return 3.0 + rng.randint(0, 40) / 10.0
    return 4.0 + rng.randint(0, 40) / 10.0


def generate_customer(customer_id: int, restaurants: Optional[List["Restaurant"]],
                      rng: np.random.RandomState) -> Customer:
    """
    Generate a random customer around central Cairo.

    Args:
        customer_id: Id for the new customer
        restaurants: Stores to draw valuations for (may be empty)
        rng: Random stream for the run

    Returns:
        A fully populated Customer
    """
    segment = SEGMENTS[rng.randint(0, 3)]
    willingness_to_pay = segment_willingness_to_pay(segment, rng)
    weights = segment_weights(segment, rng)
    leaving_threshold = segment_leaving_threshold(segment, rng)

    customer = Customer(
        customer_id,
        longitude=rng.uniform(31.2, 31.3),
        latitude=rng.uniform(30.0, 30.1),
        segment=segment,
        willingness_to_pay=willingness_to_pay,
        weights=weights,
        leaving_threshold=leaving_threshold,
    )
    for restaurant in restaurants or []:
        customer.store_valuations[restaurant.business_id] = rng.uniform(0.0, 5.0)
    return customer


def generate_customers(k: int, restaurants: Optional[List["Restaurant"]],
                       rng: np.random.RandomState, start_id: int = 0) -> List[Customer]:
    return [generate_customer(start_id + i, restaurants, rng) for i in range(k)]


# --------------------------------------------------------------------------
# Arrival decision
# --------------------------------------------------------------------------

def calculate_store_scores(customer: Customer, store_ids: List[int],
                           market_state: "MarketState") -> List[float]:
    """Personal utility per displayed store; unknown ids get the ineligible floor."""
    scores = []
    for store_id in store_ids:
        store = market_state.get_restaurant(store_id)
        scores.append(customer.calculate_store_score(store) if store is not None else INELIGIBLE_SCORE)
    return scores


def decision_threshold(customer: Customer) -> float:
    """Less loyal customers demand more before transacting."""
    return customer.leaving_threshold + (1.0 - customer.loyalty) * 2.0


def adjust_scores(customer: Customer, store_ids: List[int], scores: List[float],
                  market_state: "MarketState") -> List[float]:
    """Apply history and inventory-safety adjustments to raw utilities."""
    adjusted = list(scores)
    for i, store_id in enumerate(store_ids):
        interaction = customer.history.store_interactions.get(store_id)
        if interaction is not None and interaction.reservations > 0:
            adjusted[i] += interaction.success_rate * 1.5
            if interaction.cancellations > 0:
                adjusted[i] -= interaction.cancellation_rate * 2.0

        store = market_state.get_restaurant(store_id)
        if store is not None:
            adjusted[i] += min(1.0, store.estimated_bags / 12.0) * 0.3
    return adjusted


def select_probabilistically(store_ids: List[int], scores: List[float],
                             rng: np.random.RandomState) -> int:
    """
    Softmax choice with temperature over already-filtered candidates.

    Scores are shifted so the minimum maps to 1.0; softmax is shift-invariant
    so this only guards the exponent.
    """
    values = np.asarray(scores, dtype=float)
    shifted = values - values.min() + 1.0
    probabilities = softmax(shifted / SOFTMAX_TEMPERATURE)

    draw = rng.uniform(0.0, 1.0)
    cumulative = np.cumsum(probabilities)
    for i, mass in enumerate(cumulative):
        if draw <= mass:
            return store_ids[i]
    # rounding left the total just under the draw
    return store_ids[-1]


def select_store(customer: Customer, store_ids: List[int], scores: List[float],
                 market_state: "MarketState", rng: np.random.RandomState) -> Optional[int]:
    """
    Decide between leaving and picking one of the displayed stores.

    Returns:
        Chosen store id, or None when the customer leaves
    """
    if not scores:
        return None

    threshold = decision_threshold(customer)
    if max(scores) < threshold:
        return None

    adjusted = adjust_scores(customer, store_ids, scores, market_state)

    candidates = [(store_id, score) for store_id, score in zip(store_ids, adjusted)
                  if score >= threshold and score > TOO_FAR_CUTOFF]
    if not candidates:
        return None

    return select_probabilistically([c[0] for c in candidates], [c[1] for c in candidates], rng)


def create_reservation(customer: Customer, restaurant_id: int,
                       market_state: "MarketState") -> Optional[Reservation]:
    """
    Append a PENDING reservation if the store still has forecast bags.

    Returns:
        The new Reservation, or None if the store refused it
    """
    restaurant = market_state.get_restaurant(restaurant_id)
    if restaurant is None or not restaurant.can_accept_reservation():
        return None

    reservation = Reservation(
        market_state.allocate_reservation_id(),
        customer.customer_id,
        restaurant_id,
        market_state.current_time,
    )
    customer.record_reservation_attempt(restaurant_id, restaurant.business_type, market_state.current_time)
    restaurant.reserved_count += 1
    market_state.reservations.append(reservation)
    return reservation


def process_customer_arrival(customer: Customer, market_state: "MarketState", n_displayed: int,
                             strategy: Union[str, RankingStrategy],
                             rng: np.random.RandomState) -> Optional[int]:
    """
    Run one customer's full arrival: display, score, decide, reserve.

    Args:
        customer: Arriving customer (registered in market_state)
        market_state: Shared market for the day
        n_displayed: Display width
        strategy: Ranking strategy name or instance
        rng: Random stream for the run

    Returns:
        Selected store id, or None if the customer churned
    """
    customer.record_visit()
    displayed = select_displayed(customer, market_state, n_displayed, strategy)
    customer.displayed_stores = displayed
    market_state.record_impressions(displayed)

    if not displayed:
        customer.churned = True
        logger.debug(f"[{market_state.current_time}] customer {customer.customer_id}: nothing to show, left")
        return None

    scores = calculate_store_scores(customer, displayed, market_state)
    selected = select_store(customer, displayed, scores, market_state, rng)
    if selected is None:
        customer.churned = True
        logger.debug(f"[{market_state.current_time}] customer {customer.customer_id}: "
                     f"best={max(scores):.2f} threshold={decision_threshold(customer):.2f}, left")
        return None

    if create_reservation(customer, selected, market_state) is None:
        customer.churned = True
        logger.debug(f"[{market_state.current_time}] customer {customer.customer_id}: store {selected} full, left")
        return None

    logger.debug(f"[{market_state.current_time}] customer {customer.customer_id} reserved at store {selected}")
    return selected
