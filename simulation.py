# -*- coding: utf-8 -*-
"""
Simulation Module
Drives the marketplace day by day:
- Arrival scheduling
- Single-day event loop (display -> decide -> reserve, then settle)
- Multi-day runs with customer churn and replenishment
- Side-by-side comparison of ranking strategies on identical inputs
"""

import copy
import logging
import numpy as np
from typing import List, Dict, Optional, Union

from marketplace import MarketState, Timestamp
from restaurant_api import Restaurant, initialize_day, settle, calculate_gini_coefficient
from customer_api import Customer, generate_customer, process_customer_arrival
from ranking_algorithm import RankingStrategy, get_strategy
from metrics import MetricsCollector, SimulationMetrics
from config import DEFAULT_STRATEGIES
import report

logger = logging.getLogger(__name__)

OPENING_HOUR = 8
LAST_ARRIVAL_HOUR = 21


def generate_arrival_times(num_customers: int, rng: np.random.RandomState) -> List[Timestamp]:
    """
    Random arrival times between 8:00 and 21:59, sorted ascending.

    Args:
        num_customers: Number of arrivals
        rng: Random stream for the run

    Returns:
        Sorted list of Timestamps
    """
    times = []
    for _ in range(num_customers):
        hour = int(rng.randint(OPENING_HOUR, LAST_ARRIVAL_HOUR + 1))
        minute = int(rng.randint(0, 60))
        times.append(Timestamp(hour, minute))
    return sorted(times)


def generate_arrival_schedule(num_days: int, customers_per_day: int,
                              rng: np.random.RandomState) -> List[List[Timestamp]]:
    return [generate_arrival_times(customers_per_day, rng) for _ in range(num_days)]


def _fresh_copy(customer: Customer, customer_id: Optional[int] = None) -> Customer:
    fresh = copy.deepcopy(customer)
    if customer_id is not None:
        fresh.customer_id = customer_id
        fresh.name = f"Customer_{customer_id}"
    fresh.reset_history()
    return fresh


class SimulationEngine:
    """
    One independent simulation run for one ranking strategy.

    The engine owns its MarketState (deep copies of the given stores) and its
    own RandomState, so several engines can run side by side on the same inputs
    without sharing any state.
    """

    def __init__(self, restaurants: List[Restaurant], strategy: Union[str, RankingStrategy],
                 n_displayed: int = 5, seed: Optional[int] = None,
                 customer_pool: Optional[List[Customer]] = None,
                 arrival_schedule: Optional[List[List[Timestamp]]] = None):
        self.strategy = get_strategy(strategy)
        self.n_displayed = n_displayed
        self.rng = np.random.RandomState(seed)

        self.market_state = MarketState(copy.deepcopy(restaurants))
        self.pre_generated_customers: List[Customer] = copy.deepcopy(customer_pool) if customer_pool else []
        self.arrival_schedule = arrival_schedule

        self.customer_pool: List[Customer] = []
        self.next_customer_id = 0

        self.collector = MetricsCollector()
        self.daily_metrics: List[SimulationMetrics] = []
        self.metrics = SimulationMetrics()

        for restaurant in self.market_state.restaurants:
            restaurant.sample_actual_bags(self.rng)

    @property
    def strategy_name(self) -> str:
        return self.strategy.name

    def _new_customer(self) -> Customer:
        """
        Next replacement customer with a never-used id.

        A supplied pool is recycled in a cycle (fresh id, reset history) so runs
        on loaded customers never mix in synthetic ones.
        """
        customer_id = self.next_customer_id
        self.next_customer_id += 1
        if self.pre_generated_customers:
            template = self.pre_generated_customers[customer_id % len(self.pre_generated_customers)]
            return _fresh_copy(template, customer_id)
        return generate_customer(customer_id, self.market_state.restaurants, self.rng)

    def _arrival_times(self, num_customers: int, day_index: int) -> List[Timestamp]:
        if self.arrival_schedule is not None and 0 <= day_index < len(self.arrival_schedule):
            times = self.arrival_schedule[day_index]
            if len(times) != num_customers:
                raise ValueError(f"Arrival schedule for day {day_index + 1} has {len(times)} "
                                 f"entries, expected {num_customers}")
            return sorted(times)
        return generate_arrival_times(num_customers, self.rng)

    def run_day(self, num_customers: int, day_index: int = 0) -> SimulationMetrics:
        """
        Process one day of arrivals in time order, then settle reservations.

        Customers are taken from the pool in order; the pool grows with
        generated customers if it is too small.

        Returns:
            The day's metrics
        """
        market_state = self.market_state
        arrival_times = self._arrival_times(num_customers, day_index)

        while len(self.customer_pool) < num_customers:
            self.customer_pool.append(self._new_customer())

        for customer, arrival_time in zip(self.customer_pool[:num_customers], arrival_times):
            market_state.current_time = arrival_time
            self.collector.log_customer_arrival()

            customer = market_state.register_customer(customer)
            selected = process_customer_arrival(customer, market_state, self.n_displayed,
                                                self.strategy, self.rng)
            self.collector.log_stores_displayed(customer.displayed_stores)
            if selected is None:
                self.collector.log_customer_left()
            else:
                self.collector.log_reservation()

        settle(market_state)

        self.collector.log_end_of_day(market_state)
        self.collector.calculate_fairness_metrics(market_state)

        for restaurant in market_state.restaurants:
            logger.debug(f"{restaurant.business_name}: rating {restaurant.rating_at_day_start:.2f} -> "
                         f"{restaurant.general_ranking:.2f} [confirmed {restaurant.daily_orders_confirmed}, "
                         f"cancelled {restaurant.daily_orders_cancelled}]")
        return self.collector.metrics

    def run_multi_day(self, num_days: int, customers_per_day: int) -> SimulationMetrics:
        """
        Run several consecutive days.

        Customer history and loyalty carry over between days; churned customers
        are dropped each morning and replaced so every day has customers_per_day
        arrivals. Impression counts accumulate over the whole run.

        Returns:
            Aggregated metrics, with the exposure Gini computed over all days
        """
        market_state = self.market_state
        logger.info(f"Starting {num_days}-day simulation ({self.strategy_name}): "
                    f"{customers_per_day} customers/day, {len(market_state.restaurants)} stores")

        for restaurant in market_state.restaurants:
            restaurant.initial_rating = restaurant.general_ranking
        market_state.reset_impressions()

        if self.pre_generated_customers:
            # pool ids become 0..N-1; replacements continue from N
            self.customer_pool = [_fresh_copy(c, i) for i, c in enumerate(self.pre_generated_customers)]
            self.next_customer_id = len(self.pre_generated_customers)
        elif not self.customer_pool:
            for _ in range(customers_per_day * 2):
                self.customer_pool.append(self._new_customer())

        aggregated = SimulationMetrics()
        self.daily_metrics = []

        for day in range(1, num_days + 1):
            market_state.reset_day()

            active = [c for c in self.customer_pool if not c.churned]
            while len(active) < customers_per_day:
                active.append(self._new_customer())
            self.customer_pool = active

            initialize_day(market_state.restaurants, self.rng)
            market_state.rebuild_index()

            self.collector.reset()
            day_metrics = self.run_day(customers_per_day, day - 1)
            self.daily_metrics.append(day_metrics)
            aggregated.add(day_metrics)

            logger.info(f"[{self.strategy_name}] Day {day}/{num_days}: sold={day_metrics.total_bags_sold} "
                        f"waste={day_metrics.total_bags_unsold} revenue={day_metrics.total_revenue_generated:.2f} "
                        f"left={day_metrics.customers_who_left}")

        exposures = [aggregated.times_displayed_per_store[r.business_id] for r in market_state.restaurants]
        aggregated.gini_coefficient_exposure = calculate_gini_coefficient(exposures)
        if market_state.restaurants:
            aggregated.average_final_rating = float(np.mean([r.general_ranking for r in market_state.restaurants]))

        self.metrics = aggregated
        logger.info(f"[{self.strategy_name}] {num_days}-day simulation complete: {aggregated.summary()}")
        return aggregated

    def store_results(self) -> List[Dict]:
        """Per-store rows for export (last day's inventory, run totals)."""
        rows = []
        for restaurant in self.market_state.restaurants:
            store_id = restaurant.business_id
            rows.append({
                'Restaurant': restaurant.business_name,
                'Estimated': restaurant.estimated_bags,
                'Actual': restaurant.actual_bags,
                'Reserved': len(self.market_state.reservations_for(store_id)),
                'Sold': self.metrics.bags_sold_per_store[store_id],
                'Cancelled': self.metrics.bags_cancelled_per_store[store_id],
                'Waste': self.metrics.waste_per_store[store_id],
                'Revenue': round(self.metrics.revenue_per_store[store_id], 2),
                'Exposures': self.metrics.times_displayed_per_store[store_id],
                'Initial Rating': round(restaurant.initial_rating, 2),
                'Final Rating': round(restaurant.general_ranking, 2),
            })
        return rows


def run_single_strategy_simulation(strategy: Union[str, RankingStrategy], restaurants: List[Restaurant],
                                   n_displayed: int = 5, num_days: int = 7, customers_per_day: int = 100,
                                   seed: Optional[int] = None,
                                   customer_pool: Optional[List[Customer]] = None,
                                   arrival_schedule: Optional[List[List[Timestamp]]] = None) -> SimulationEngine:
    """Run one strategy end to end and return the finished engine."""
    engine = SimulationEngine(restaurants, strategy, n_displayed=n_displayed, seed=seed,
                              customer_pool=customer_pool, arrival_schedule=arrival_schedule)
    engine.run_multi_day(num_days, customers_per_day)
    return engine


def compare_strategies(restaurants: List[Restaurant], strategies: Optional[List[str]] = None,
                       n_displayed: int = 5, num_days: int = 7, customers_per_day: int = 100,
                       seed: Optional[int] = 12345,
                       customer_pool: Optional[List[Customer]] = None,
                       output_dir: Optional[str] = "simulation_results",
                       verbose: bool = True) -> Dict:
    """
    Run every strategy on the same stores, customers and arrival times.

    Args:
        restaurants: Store roster (each run gets its own copy)
        strategies: Strategy names; all registered strategies when None
        n_displayed: Display width
        num_days: Days per run
        customers_per_day: Arrivals per day
        seed: Seed for the shared inputs and for every run's random stream
        customer_pool: Optional customer pool; generated when None
        output_dir: Where to write CSVs and the text report (None skips writing)
        verbose: Print the comparison table

    Returns:
        Dict with 'metrics' (name -> SimulationMetrics), 'engines' and 'summary' rows
    """
    strategies = list(strategies or DEFAULT_STRATEGIES)
    shared_rng = np.random.RandomState(seed)

    if customer_pool is None:
        customer_pool = [generate_customer(i, restaurants, shared_rng) for i in range(customers_per_day * 2)]
    arrival_schedule = generate_arrival_schedule(num_days, customers_per_day, shared_rng)
    logger.info(f"Shared inputs: {len(customer_pool)} customers, {len(arrival_schedule)} days of arrivals")

    all_metrics: Dict[str, SimulationMetrics] = {}
    engines: Dict[str, SimulationEngine] = {}
    for name in strategies:
        logger.info(f"Running {name} strategy...")
        engine = run_single_strategy_simulation(
            name, restaurants, n_displayed=n_displayed, num_days=num_days,
            customers_per_day=customers_per_day, seed=seed,
            customer_pool=customer_pool, arrival_schedule=arrival_schedule,
        )
        engines[name] = engine
        all_metrics[name] = engine.metrics

    summary = [dict(strategy=name, **m.summary()) for name, m in all_metrics.items()]

    if output_dir:
        for name, engine in engines.items():
            report.export_store_results(engine, name, output_dir)
        report.save_comparison(summary, output_dir)
        report.write_comparison_report(all_metrics, output_dir, num_days, customers_per_day)

    if verbose:
        report.print_comparison(summary)

    return {'metrics': all_metrics, 'engines': engines, 'summary': summary}
