# -*- coding: utf-8 -*-
"""
Report Module
Writes per-strategy store results, the comparison table and a text report.
"""

import os
import logging
import pandas as pd
from typing import List, Dict, TYPE_CHECKING

if TYPE_CHECKING:
    from metrics import SimulationMetrics
    from simulation import SimulationEngine

logger = logging.getLogger(__name__)

STORE_COLUMNS = ['Restaurant', 'Estimated', 'Actual', 'Reserved', 'Sold',
                 'Cancelled', 'Waste', 'Revenue', 'Exposures']

COMPARISON_ROWS = [
    ("Bags Sold", 'bags_sold', "{}"),
    ("Bags Cancelled", 'bags_cancelled', "{}"),
    ("Bags Unsold (Waste)", 'waste', "{}"),
    ("Revenue Generated", 'revenue', "{:.2f}"),
    ("Revenue Lost", 'revenue_lost', "{:.2f}"),
    ("Revenue Efficiency (%)", 'revenue_efficiency', "{:.2f}"),
    ("Customers Who Left", 'customers_left', "{}"),
    ("Conversion Rate (%)", 'conversion_rate', "{:.2f}"),
    ("Gini Coefficient (Fairness)", 'gini_exposure', "{:.4f}"),
    ("Average Final Rating", 'avg_final_rating', "{:.3f}"),
]


def export_store_results(engine: "SimulationEngine", strategy_name: str, output_dir: str) -> str:
    """Write one strategy's per-store results to <output_dir>/<strategy>_results.csv."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, f"{strategy_name}_results.csv")
    df = pd.DataFrame(engine.store_results())
    extra = [c for c in df.columns if c not in STORE_COLUMNS]
    df = df[STORE_COLUMNS + extra]
    df.to_csv(path, index=False)
    logger.info(f"Saved {strategy_name} store results to {path}")
    return path


def save_comparison(summary: List[Dict], output_dir: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, "strategy_comparison.csv")
    pd.DataFrame(summary).to_csv(path, index=False)
    logger.info(f"Saved strategy comparison to {path}")
    return path


def format_comparison_table(summary: List[Dict]) -> str:
    """Metric rows by strategy columns, fixed width."""
    names = [row['strategy'] for row in summary]
    lines = [f"{'Metric':<32}" + "".join(f"{name:>14}" for name in names), "-" * (32 + 14 * len(names))]
    for label, key, fmt in COMPARISON_ROWS:
        cells = "".join(f"{fmt.format(row[key]):>14}" for row in summary)
        lines.append(f"{label:<32}" + cells)
    return "\n".join(lines)


def print_comparison(summary: List[Dict]) -> None:
    print()
    print("=" * 70)
    print("STRATEGY COMPARISON")
    print("=" * 70)
    print(format_comparison_table(summary))
    print()


def write_comparison_report(all_metrics: Dict[str, "SimulationMetrics"], output_dir: str,
                            num_days: int, customers_per_day: int) -> str:
    """Full text report: overall table followed by a per-strategy breakdown."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, "comparison_report.txt")
    summary = [dict(strategy=name, **m.summary()) for name, m in all_metrics.items()]

    lines = [
        "=" * 70,
        "SURPLUS FOOD MARKETPLACE SIMULATION - STRATEGY COMPARISON REPORT",
        "=" * 70,
        "",
        f"Simulation Period: {num_days} Days",
        f"Customers per Day: {customers_per_day}",
        f"Total Arrivals: {num_days * customers_per_day}",
        "",
        format_comparison_table(summary),
        "",
    ]
    for name, m in all_metrics.items():
        lines += [
            "=" * 70,
            f"{name} - DETAILED METRICS",
            "=" * 70,
            f"Total Bags Sold: {m.total_bags_sold}",
            f"Total Bags Cancelled: {m.total_bags_cancelled}",
            f"Total Bags Unsold (Waste): {m.total_bags_unsold}",
            f"Total Revenue Generated: {m.total_revenue_generated:.2f}",
            f"Revenue Lost (from cancellations): {m.total_revenue_lost:.2f}",
            f"Revenue Efficiency: {m.revenue_efficiency:.2f}%",
            f"Customer Arrivals: {m.total_customer_arrivals}",
            f"Customers Who Left: {m.customers_who_left}",
            f"Conversion Rate: {m.conversion_rate:.2f}%",
            f"Gini Coefficient (Exposure): {m.gini_coefficient_exposure:.4f}",
            "  (0 = perfect equality, 1 = maximum inequality)",
            f"Average Final Store Rating: {m.average_final_rating:.3f}",
            "",
        ]

    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))
    logger.info(f"Saved comparison report to {path}")
    return path
