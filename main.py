# -*- coding: utf-8 -*-
"""
Main Entry Point
Surplus Food Marketplace - Strategy Comparison

Runs every ranking strategy over the same stores, customers and arrival
times and writes a comparison report. Supports CSV data or built-in defaults.
"""

import argparse
import logging
import os
import sys

import numpy as np

from config import SimulationConfig
from logger import configure_module_loggers
from restaurant_api import load_default_restaurants
from customer_api import generate_customers
from data_loader import (
    load_stores_from_csv,
    load_customers_from_csv,
    save_stores_to_csv,
    save_customers_to_csv,
)
from simulation import compare_strategies


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Surplus food marketplace simulation")
    parser.add_argument("--stores", help="Stores CSV (defaults to the built-in Cairo roster)")
    parser.add_argument("--customers", help="Customers CSV (defaults to generated customers)")
    parser.add_argument("--days", type=int, help="Number of simulated days")
    parser.add_argument("--customers-per-day", type=int, help="Customer arrivals per day")
    parser.add_argument("-n", "--n-displayed", type=int, help="Stores shown to each customer")
    parser.add_argument("--seed", type=int, help="Random seed for shared inputs and every run")
    parser.add_argument("--strategies", help="Comma separated strategy names")
    parser.add_argument("--output-dir", help="Directory for CSV results and the report")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", action="store_true", help="Also write a log file under logs/")
    parser.add_argument("--generate", action="store_true",
                        help="Write generated_stores.csv and generated_customers.csv, then run on them")
    parser.add_argument("--quiet", action="store_true", help="Do not print the comparison table")
    return parser


def apply_args(config: SimulationConfig, args: argparse.Namespace) -> SimulationConfig:
    """Command line flags override environment configuration."""
    if args.stores:
        config.stores_csv = args.stores
    if args.customers:
        config.customers_csv = args.customers
    if args.days is not None:
        config.num_days = args.days
    if args.customers_per_day is not None:
        config.customers_per_day = args.customers_per_day
    if args.n_displayed is not None:
        config.n_displayed = args.n_displayed
    if args.seed is not None:
        config.seed = args.seed
    if args.strategies:
        config.strategies = [s.strip() for s in args.strategies.split(",") if s.strip()]
    if args.output_dir:
        config.output_dir = args.output_dir
    if args.log_level:
        config.log_level = args.log_level
    if args.log_file:
        config.log_to_file = True
    return config


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = apply_args(SimulationConfig.from_env(), args)

    logger = configure_module_loggers(getattr(logging, config.log_level, logging.INFO), config.log_to_file)

    try:
        config.validate()
    except ValueError as e:
        logger.error(str(e))
        return 2

    if args.generate:
        rng = np.random.RandomState(config.seed)
        stores = load_default_restaurants()
        customers = generate_customers(config.customers_per_day * 2, stores, rng)
        config.stores_csv = "generated_stores.csv"
        config.customers_csv = "generated_customers.csv"
        save_stores_to_csv(stores, config.stores_csv)
        save_customers_to_csv(customers, config.customers_csv)

    try:
        if config.stores_csv:
            restaurants = load_stores_from_csv(config.stores_csv)
            logger.info(f"Loaded {len(restaurants)} stores from {config.stores_csv}")
        else:
            restaurants = load_default_restaurants()
            logger.info(f"Using {len(restaurants)} default stores")

        customer_pool = None
        if config.customers_csv:
            if os.path.exists(config.customers_csv):
                customer_pool = load_customers_from_csv(config.customers_csv, seed=config.seed or 12345)
                logger.info(f"Loaded {len(customer_pool)} customers from {config.customers_csv}")
            else:
                logger.warning(f"Customers CSV not found: {config.customers_csv}; generating customers")
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        return 1

    logger.info(f"Comparing {', '.join(config.strategies)} over {config.num_days} days, "
                f"{config.customers_per_day} customers/day, {config.n_displayed} stores shown")

    compare_strategies(
        restaurants,
        strategies=config.strategies,
        n_displayed=config.n_displayed,
        num_days=config.num_days,
        customers_per_day=config.customers_per_day,
        seed=config.seed,
        customer_pool=customer_pool,
        output_dir=config.output_dir,
        verbose=not args.quiet,
    )
    logger.info(f"Results written to {config.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
