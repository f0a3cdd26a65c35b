# -*- coding: utf-8 -*-
"""
Ranking Algorithm Module
Handles store selection and ranking strategies for displaying stores to customers.

Every strategy maps (customer, market state, display width) to an ordered list
of store ids drawn from the stores still accepting reservations. Ties keep
store insertion order (Python's sort is stable, also with reverse=True).
"""

import math
from typing import List, Dict, Tuple, Union, TYPE_CHECKING

from marketplace import MAX_TRAVEL_DISTANCE

if TYPE_CHECKING:
    from customer_api import Customer
    from marketplace import MarketState
    from restaurant_api import Restaurant

# Registry for strategies
STRATEGY_REGISTRY = {}


def register_strategy(name: str):
    """Decorator to register a strategy class under a display name."""
    def decorator(obj):
        obj.name = name
        STRATEGY_REGISTRY[name] = obj
        return obj
    return decorator


def _sort_by_score(scores: List[Tuple[int, float]]) -> List[Tuple[int, float]]:
    return sorted(scores, key=lambda pair: pair[1], reverse=True)


def _within_range(customer: "Customer", store: "Restaurant") -> bool:
    return customer.distance_to(store) <= MAX_TRAVEL_DISTANCE


def _is_new_store(customer: "Customer", store_id: int) -> bool:
    return not customer.history.has_purchased_from(store_id)


class RankingStrategy:
    """Abstract base class for ranking strategies."""

    name = "abstract"

    def select_stores(self, customer: "Customer", market_state: "MarketState", n: int) -> List[int]:
        """Return up to n store ids to display to the customer."""
        raise NotImplementedError

    def _available_stores(self, market_state: "MarketState") -> List["Restaurant"]:
        stores = []
        for store_id in market_state.get_available_restaurant_ids():
            store = market_state.get_restaurant(store_id)
            if store is not None:
                stores.append(store)
        return stores

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


@register_strategy("Baseline")
class BaselineStrategy(RankingStrategy):
    """Highest rated stores first. No distance filter, no personalization."""

    def select_stores(self, customer, market_state, n):
        stores = self._available_stores(market_state)
        ranked = sorted(stores, key=lambda s: s.general_ranking, reverse=True)
        return [s.business_id for s in ranked[:n]]


@register_strategy("Sama")
class MultiObjectiveStrategy(RankingStrategy):
    """
    Multi-objective ranking balancing personalization, waste, value and revenue.

    Slots are filled in four passes:
    1. the top personalization_ratio * n stores by combined score
    2. one quality store the customer has never bought from
    3. one price-competitive store
    4. the remaining slots by combined score
    """

    def _segment_weights(self, customer: "Customer") -> Tuple[float, float, float]:
        """(rating, price, inventory) weights for the customer's segment."""
        if customer.is_premium:
            return 1.5, 0.7, 0.5
        if customer.is_budget:
            return 0.8, 1.3, 0.8
        return 1.0, 1.0, 0.6

    def score_store(self, customer: "Customer", store: "Restaurant") -> float:
        rating_weight, _, inventory_weight = self._segment_weights(customer)
        base_score = customer.calculate_store_score(store)

        unsold = store.unsold_bags
        urgency = min(1.0, unsold / 15.0)
        inventory_bonus = urgency * 1.2 * inventory_weight

        rating_bonus = max(0.0, (store.general_ranking - 3.5) * 0.3 * rating_weight)

        price_bonus = 0.0
        if customer.is_budget:
            if store.price_per_bag < customer.willingness_to_pay:
                savings = (customer.willingness_to_pay - store.price_per_bag) / customer.willingness_to_pay
                price_bonus = savings * 0.4
        elif customer.is_premium and store.price_per_bag > 100.0:
            price_bonus = 0.1

        history_bonus = 0.0
        interaction = customer.history.store_interactions.get(store.business_id)
        if interaction is not None and interaction.reservations > 0:
            history_bonus = interaction.success_rate * 0.5
            if interaction.cancellations > 0:
                history_bonus -= interaction.cancellation_rate * 1.0

        category_bonus = 0.0
        if store.business_type in customer.category_preference:
            category_bonus = customer.category_preference[store.business_type] * 0.2

        waste_bonus = 0.0
        if unsold > 5:
            waste_bonus = min(2.0, unsold / 5.0) * 0.5

        revenue_bonus = (store.price_per_bag * urgency / 200.0) * 0.3

        return (base_score + inventory_bonus + rating_bonus + price_bonus
                + history_bonus + category_bonus + waste_bonus + revenue_bonus)

    def personalization_ratio(self, customer: "Customer", market_state: "MarketState") -> float:
        if customer.is_budget:
            ratio = 0.7
        elif customer.is_premium:
            ratio = 0.5
        else:
            ratio = 0.6
        ratio += customer.loyalty * 0.15

        # market-wide waste pressure opens more slots to exploration
        unsold = [r.unsold_bags for r in market_state.restaurants if r.unsold_bags > 0]
        avg_unsold = sum(unsold) / len(unsold) if unsold else 0.0
        if avg_unsold > 10.0:
            ratio -= 0.1
        return min(0.85, max(0.4, ratio))

    def _discovery_score(self, customer: "Customer", store: "Restaurant"):
        """Quality score for a never-purchased store, or None if it fails the segment gate."""
        rating = store.general_ranking
        price = store.price_per_bag
        value_ratio = rating / price
        inventory_safety = min(1.0, store.estimated_bags / 15.0)
        unsold_bonus = min(1.0, store.unsold_bags / 10.0)

        if customer.is_budget:
            if price <= customer.willingness_to_pay * 1.1 and store.estimated_bags >= 8 and rating >= 3.8:
                affordability = (customer.willingness_to_pay - price) / customer.willingness_to_pay
                return (value_ratio * 15.0 + affordability * 2.0 + inventory_safety * 0.5
                        + rating * 0.3 + unsold_bonus * 0.8)
        elif customer.is_premium:
            if rating >= 4.0 and store.estimated_bags >= 8:
                return rating * 1.5 + value_ratio * 10.0 + inventory_safety * 0.5 + unsold_bonus * 0.6
        else:
            if rating >= 3.9 and store.estimated_bags >= 8:
                return rating + value_ratio * 10.0 + inventory_safety * 0.5 + unsold_bonus * 0.7
        return None

    def _competitive_score(self, customer: "Customer", store: "Restaurant"):
        """Value-for-money score, or None if the store is not price competitive."""
        if store.estimated_bags < 8:
            return None
        rating = store.general_ranking
        price = store.price_per_bag
        value_ratio = rating / price
        inventory_safety = min(1.0, store.estimated_bags / 15.0)

        if customer.is_budget:
            if price <= customer.willingness_to_pay * 1.1 and value_ratio > 0.025:
                affordability = (customer.willingness_to_pay - price) / customer.willingness_to_pay
                return value_ratio * 120.0 + affordability * 3.0 + inventory_safety * 0.5 + rating * 0.3
        elif customer.is_premium:
            if value_ratio > 0.03 and rating >= 3.8:
                return value_ratio * 100.0 + inventory_safety * 0.5 + rating * 0.8
        else:
            if value_ratio > 0.03:
                return value_ratio * 100.0 + inventory_safety * 0.5 + rating * 0.5
        return None

    def _best_candidate(self, candidates: List[Tuple[int, float]]):
        if not candidates:
            return None
        return _sort_by_score(candidates)[0][0]

    def select_stores(self, customer, market_state, n):
        available = self._available_stores(market_state)
        if not available:
            return []

        store_scores = _sort_by_score([(s.business_id, self.score_store(customer, s)) for s in available])
        result: List[int] = []
        selected = set()

        # pass 1: personalized
        ratio = self.personalization_ratio(customer, market_state)
        personalized_count = max(3, min(int(n * ratio), len(store_scores)))
        for store_id, _ in store_scores[:personalized_count]:
            if len(result) >= n:
                break
            result.append(store_id)
            selected.add(store_id)

        # pass 2: discovery
        if len(result) < n:
            candidates = []
            for store in available:
                if store.business_id in selected or not _is_new_store(customer, store.business_id):
                    continue
                quality = self._discovery_score(customer, store)
                if quality is not None:
                    candidates.append((store.business_id, quality))
            best = self._best_candidate(candidates)
            if best is not None:
                result.append(best)
                selected.add(best)

        # pass 3: price competitive
        if len(result) < n:
            candidates = []
            for store in available:
                if store.business_id in selected:
                    continue
                competitive = self._competitive_score(customer, store)
                if competitive is not None:
                    candidates.append((store.business_id, competitive))
            best = self._best_candidate(candidates)
            if best is not None:
                result.append(best)
                selected.add(best)

        # pass 4: fill
        for store_id, _ in store_scores:
            if len(result) >= n:
                break
            if store_id not in selected:
                result.append(store_id)
                selected.add(store_id)

        return result


@register_strategy("Andrew")
class FairnessStrategy(RankingStrategy):
    """Personal utility damped by how often a store has already been shown."""

    def select_stores(self, customer, market_state, n):
        scores = []
        for store in self._available_stores(market_state):
            impressions = market_state.impression_counts.setdefault(store.business_id, 0)
            damping = math.log(impressions + 1.0) + 1.0
            scores.append((store.business_id, customer.calculate_store_score(store) / damping))
        return [store_id for store_id, _ in _sort_by_score(scores)[:n]]


@register_strategy("Amer")
class NearestFirstStrategy(RankingStrategy):
    """Nearest in-range store first, then in-range stores penalized by price and distance."""

    def select_stores(self, customer, market_state, n):
        available = self._available_stores(market_state)
        result: List[int] = []

        closest = None
        min_distance = math.inf
        for store in available:
            distance = customer.distance_to(store)
            if distance < min_distance and distance <= MAX_TRAVEL_DISTANCE:
                min_distance = distance
                closest = store
        if closest is not None:
            result.append(closest.business_id)

        scores = []
        for store in available:
            if store is closest or not _within_range(customer, store):
                continue
            score = (customer.calculate_store_score(store)
                     - store.price_per_bag * 0.01
                     - customer.distance_to(store) * 20.0)
            scores.append((store.business_id, score))

        remaining = n - len(result)
        result.extend(store_id for store_id, _ in _sort_by_score(scores)[:max(0, remaining)])
        return result


@register_strategy("Ziad")
class WeightedLinearStrategy(RankingStrategy):
    """Fixed linear blend of price, rating and unsold bags; never shows more than five stores."""

    PRICE_WEIGHT = -0.01
    RATING_WEIGHT = 1.5
    UNSOLD_WEIGHT = 0.1
    MAX_DISPLAYED = 5

    def select_stores(self, customer, market_state, n):
        scores = []
        for store in self._available_stores(market_state):
            if not _within_range(customer, store):
                continue
            score = (self.PRICE_WEIGHT * store.price_per_bag
                     + self.RATING_WEIGHT * store.general_ranking
                     + self.UNSOLD_WEIGHT * store.unsold_bags)
            scores.append((store.business_id, score))
        limit = min(n, self.MAX_DISPLAYED)
        return [store_id for store_id, _ in _sort_by_score(scores)[:limit]]


@register_strategy("Harmony")
class HarmonyStrategy(RankingStrategy):
    """
    Combined strategy: satisfaction, waste, exposure fairness and revenue.

    70% of the slots go to the best combined scores, then one high-waste store,
    then one store new to the customer, then the rest by score. Increments
    impression counts for the stores it returns.
    """

    DIRECT_SHARE = 0.7

    def _satisfaction_bonus(self, customer: "Customer", store: "Restaurant") -> float:
        bonus = 0.0
        if customer.segment == "premium" and store.general_ranking >= 4.0:
            bonus = 0.5
        elif customer.segment == "budget" and store.price_per_bag <= customer.willingness_to_pay:
            bonus = 0.4
        elif customer.segment == "regular" and store.general_ranking >= 3.8:
            bonus = 0.3

        interaction = customer.history.store_interactions.get(store.business_id)
        if interaction is not None and interaction.successes > 0:
            bonus += interaction.success_rate * 0.3
        return bonus

    def score_store(self, customer: "Customer", store: "Restaurant",
                    market_state: "MarketState", avg_impressions: float) -> float:
        unsold = store.unsold_bags
        waste_bonus = unsold * 0.08
        if unsold > 12:
            waste_bonus += 0.6

        impressions = market_state.impression_counts.setdefault(store.business_id, 0)
        fairness_boost = 0.0
        if impressions < avg_impressions * 0.5:
            fairness_boost = 0.8
        elif impressions > avg_impressions * 1.5:
            fairness_boost = -0.4

        inventory_safety = min(1.0, store.estimated_bags / 10.0)
        revenue_bonus = (store.price_per_bag / 100.0) * inventory_safety * 0.3

        quality_penalty = -1.5 if store.estimated_bags < 5 else 0.0

        return (customer.calculate_store_score(store)
                + self._satisfaction_bonus(customer, store)
                + waste_bonus + fairness_boost + revenue_bonus + quality_penalty)

    def select_stores(self, customer, market_state, n):
        available = self._available_stores(market_state)
        if not available:
            return []

        counts = market_state.impression_counts
        avg_impressions = sum(counts.values()) / len(counts) if counts else 1.0

        scored: Dict[int, "Restaurant"] = {}
        scores = []
        for store in available:
            if not _within_range(customer, store):
                continue
            scored[store.business_id] = store
            scores.append((store.business_id, self.score_store(customer, store, market_state, avg_impressions)))
        ranked = _sort_by_score(scores)

        result: List[int] = []
        selected = set()

        direct_slots = int(n * self.DIRECT_SHARE)
        for store_id, _ in ranked[:direct_slots]:
            result.append(store_id)
            selected.add(store_id)

        if len(result) < n:
            for store_id, _ in ranked:
                if store_id not in selected and scored[store_id].unsold_bags >= 10:
                    result.append(store_id)
                    selected.add(store_id)
                    break

        if len(result) < n:
            for store_id, _ in ranked:
                if store_id in selected or not _is_new_store(customer, store_id):
                    continue
                store = scored[store_id]
                if store.general_ranking >= 3.8 and store.estimated_bags >= 6:
                    result.append(store_id)
                    selected.add(store_id)
                    break

        for store_id, _ in ranked:
            if len(result) >= n:
                break
            if store_id not in selected:
                result.append(store_id)
                selected.add(store_id)

        market_state.record_impressions(result)
        return result


def get_strategy(strategy: Union[str, RankingStrategy]) -> RankingStrategy:
    """
    Resolve a strategy name (or pass through an instance).

    Raises:
        KeyError: for names not in the registry
    """
    if isinstance(strategy, RankingStrategy):
        return strategy
    if strategy not in STRATEGY_REGISTRY:
        raise KeyError(f"Unknown ranking strategy {strategy!r}. Available: {list(STRATEGY_REGISTRY)}")
    return STRATEGY_REGISTRY[strategy]()


def select_displayed(customer: "Customer", market_state: "MarketState", n_displayed: int,
                     strategy: Union[str, RankingStrategy]) -> List[int]:
    """
    Ordered store ids to show an arriving customer.

    Args:
        customer: The arriving customer
        market_state: Current market
        n_displayed: Maximum number of stores to show
        strategy: Strategy name or instance

    Returns:
        At most n_displayed ids of stores still accepting reservations
    """
    if n_displayed <= 0:
        return []
    return get_strategy(strategy).select_stores(customer, market_state, n_displayed)
