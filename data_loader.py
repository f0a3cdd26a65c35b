# -*- coding: utf-8 -*-
"""
Data Loader Module
Handles loading store and customer data from CSV files and writing it back.

All validation of external data happens here: the simulation core assumes
finite coordinates, positive prices and a known customer segment.
"""

import logging
import math
import re
import pandas as pd
import numpy as np
from typing import List, Dict, Optional

from restaurant_api import Restaurant, infer_business_type
from customer_api import (
    Customer,
    Weights,
    SEGMENTS,
    segment_willingness_to_pay,
    validate_segment,
)

STORE_REQUIRED_COLUMNS = ['store_id', 'store_name', 'branch', 'average_overall_rating',
                          'price', 'longitude', 'latitude']

logger = logging.getLogger(__name__)

STORE_VALUATION_PATTERN = re.compile(r"store\D*(\d+)")


def _find_inventory_column(columns) -> Optional[str]:
    for col in columns:
        lower = col.lower()
        if 'bag' in lower and ('9am' in lower or '9 am' in lower or 'average' in lower):
            return col
    for candidate in ('average_bags_at_9AM', 'average bags at 9AM', 'estimated_bags'):
        if candidate in columns:
            return candidate
    return None


def _finite(value, field: str, row_label) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"Row {row_label}: {field} must be finite, got {value!r}")
    return number


def _present(row: pd.Series, col: Optional[str]) -> bool:
    return col is not None and col in row.index and not pd.isna(row[col]) and str(row[col]).strip() != ""


def load_stores_from_csv(csv_path: str = "stores.csv") -> List[Restaurant]:
    """
    Load stores from CSV file.

    Expected columns:
    - store_id: Unique integer ID
    - store_name: Store's name
    - branch: Branch name or area
    - average_bags_at_9AM: Estimated number of surprise bags (int)
    - average_overall_rating: Average store rating (1-5)
    - price: Bag price (EGP)
    - longitude, latitude: Store location (float)
    - business_type or type (optional): bakery / cafe / restaurant, inferred from the name if missing

    Returns:
        List of Restaurant objects
    """
    try:
        df = pd.read_csv(csv_path, skipinitialspace=True)
    except FileNotFoundError:
        raise FileNotFoundError(f"Stores CSV file not found: {csv_path}")
    df.columns = [str(c).strip() for c in df.columns]

    inventory_col = _find_inventory_column(list(df.columns))
    if not inventory_col:
        raise ValueError("Could not find inventory column. Expected something like "
                         "'average_bags_at_9AM' or 'average bags at 9AM'")

    missing_cols = [col for col in STORE_REQUIRED_COLUMNS if col not in df.columns]
    if missing_cols:
        raise ValueError(f"Missing required columns in {csv_path}: {missing_cols}")

    type_col = next((c for c in ('business_type', 'type') if c in df.columns), None)

    restaurants = []
    seen_ids = set()
    for index, row in df.iterrows():
        store_id = int(row['store_id'])
        if store_id in seen_ids:
            raise ValueError(f"Duplicate store_id {store_id} in {csv_path}")
        seen_ids.add(store_id)

        name = str(row['store_name']).strip()
        price = _finite(row['price'], 'price', store_id)
        if price <= 0:
            raise ValueError(f"Store {store_id}: price must be positive, got {price}")
        estimated_bags = int(row[inventory_col])
        if estimated_bags < 0:
            raise ValueError(f"Store {store_id}: bag estimate must be >= 0, got {estimated_bags}")

        business_type = str(row[type_col]).strip().lower() if _present(row, type_col) else infer_business_type(name)

        restaurants.append(Restaurant(
            business_id=store_id,
            business_name=name,
            branch=str(row['branch']).strip(),
            estimated_bags=estimated_bags,
            general_ranking=min(5.0, max(1.0, _finite(row['average_overall_rating'], 'rating', store_id))),
            price_per_bag=price,
            longitude=_finite(row['longitude'], 'longitude', store_id),
            latitude=_finite(row['latitude'], 'latitude', store_id),
            business_type=business_type,
        ))

    return restaurants


def _match_customer_columns(columns) -> Dict[str, str]:
    """Map canonical field names to the CSV's actual column names (case-insensitive)."""
    aliases = {
        'customer_id': ('customer_id', 'customerid'),
        'longitude': ('longitude', 'lon'),
        'latitude': ('latitude', 'lat'),
        'name': ('customer_name', 'name'),
        'segment': ('segment',),
        'willingness_to_pay': ('willingness_to_pay', 'wtp'),
        'rating_w': ('rating_weight', 'rating_w'),
        'price_w': ('price_weight', 'price_w'),
        'novelty_w': ('novelty_weight', 'novelty_w'),
        'loyalty': ('loyalty',),
        'leaving_threshold': ('leaving_threshold',),
    }
    lowered = {str(c).strip().lower(): c for c in columns}
    mapping = {}
    for field, names in aliases.items():
        for name in names:
            if name in lowered:
                mapping[field] = lowered[name]
                break
    return mapping


def _valuation_columns(columns) -> Dict[str, int]:
    """store<N>_valuation style columns -> store id."""
    result = {}
    for col in columns:
        lower = str(col).lower()
        if 'store' in lower and ('valuation' in lower or '_id_' in lower):
            match = STORE_VALUATION_PATTERN.search(lower)
            if match:
                result[col] = int(match.group(1))
    return result


def _default_weights(segment: str, rng: np.random.RandomState) -> Dict[str, float]:
    if segment == "budget":
        return {'rating_w': 0.5 + rng.randint(0, 100) / 200.0,
                'price_w': 1.5 + rng.randint(0, 100) / 200.0,
                'novelty_w': 0.2 + rng.randint(0, 60) / 200.0}
    if segment == "regular":
        return {'rating_w': 1.0 + rng.randint(0, 100) / 200.0,
                'price_w': 0.8 + rng.randint(0, 80) / 200.0,
                'novelty_w': 0.4 + rng.randint(0, 60) / 200.0}
    return {'rating_w': 1.5 + rng.randint(0, 100) / 200.0,
            'price_w': 0.3 + rng.randint(0, 80) / 200.0,
            'novelty_w': 0.6 + rng.randint(0, 80) / 200.0}


def _default_leaving_threshold(segment: str, rng: np.random.RandomState) -> float:
    base = {'budget': 1.5, 'regular': 2.5, 'premium': 3.5}[segment]
    return base + rng.randint(0, 20) / 20.0


def load_customers_from_csv(csv_path: str = "customers.csv",
                            rng: Optional[np.random.RandomState] = None,
                            seed: int = 12345) -> List[Customer]:
    """
    Load customers from CSV file.

    Required columns: customer_id (or CustomerID), longitude (lon), latitude (lat).
    Optional columns: customer_name, segment, willingness_to_pay (wtp),
    rating_weight, price_weight, novelty_weight, loyalty, leaving_threshold,
    and store<N>_valuation columns. Missing optional values are filled from the
    customer's segment; a missing segment is drawn uniformly.

    Args:
        csv_path: Path to customers CSV file
        rng: Random stream for filling missing values
        seed: Seed used when no rng is given

    Returns:
        List of Customer objects

    Raises:
        FileNotFoundError: if the file does not exist
        ValueError: on missing required columns, unknown segments or invalid numbers
    """
    rng = rng if rng is not None else np.random.RandomState(seed)
    try:
        df = pd.read_csv(csv_path, skipinitialspace=True)
    except FileNotFoundError:
        raise FileNotFoundError(f"Customers CSV file not found: {csv_path}")

    cols = _match_customer_columns(df.columns)
    missing = [f for f in ('customer_id', 'longitude', 'latitude') if f not in cols]
    if missing:
        raise ValueError(f"Missing required columns in {csv_path}: {missing}")
    valuation_cols = _valuation_columns(df.columns)

    customers = []
    for _, row in df.iterrows():
        customer_id = int(row[cols['customer_id']])

        if _present(row, cols.get('segment')):
            segment = validate_segment(row[cols['segment']])
        else:
            segment = SEGMENTS[rng.randint(0, 3)]

        if _present(row, cols.get('willingness_to_pay')):
            willingness_to_pay = _finite(row[cols['willingness_to_pay']], 'willingness_to_pay', customer_id)
        else:
            willingness_to_pay = segment_willingness_to_pay(segment, rng)
        if willingness_to_pay <= 0:
            raise ValueError(f"Customer {customer_id}: willingness_to_pay must be positive")

        defaults = _default_weights(segment, rng)
        weights = Weights(**{
            key: _finite(row[cols[key]], key, customer_id) if _present(row, cols.get(key)) else defaults[key]
            for key in ('rating_w', 'price_w', 'novelty_w')
        })

        if _present(row, cols.get('leaving_threshold')):
            leaving_threshold = _finite(row[cols['leaving_threshold']], 'leaving_threshold', customer_id)
        else:
            leaving_threshold = _default_leaving_threshold(segment, rng)

        customer = Customer(
            customer_id,
            longitude=_finite(row[cols['longitude']], 'longitude', customer_id),
            latitude=_finite(row[cols['latitude']], 'latitude', customer_id),
            name=str(row[cols['name']]).strip() if _present(row, cols.get('name')) else None,
            segment=segment,
            willingness_to_pay=willingness_to_pay,
            weights=weights,
            leaving_threshold=leaving_threshold,
        )
        if _present(row, cols.get('loyalty')):
            customer.loyalty = min(1.0, max(0.0, _finite(row[cols['loyalty']], 'loyalty', customer_id)))

        for col, store_id in valuation_cols.items():
            if _present(row, col):
                customer.store_valuations[store_id] = float(row[col])

        customers.append(customer)

    return customers


def save_stores_to_csv(stores: List[Restaurant], filepath: str = "generated_stores.csv") -> None:
    """Write stores in the same layout load_stores_from_csv reads."""
    pd.DataFrame([s.to_dict() for s in stores]).to_csv(filepath, index=False)
    logger.info(f"Saved {len(stores)} stores to {filepath}")


def save_customers_to_csv(customers: List[Customer], filepath: str = "generated_customers.csv") -> None:
    """Write customers in the same layout load_customers_from_csv reads."""
    pd.DataFrame([c.to_dict() for c in customers]).to_csv(filepath, index=False)
    logger.info(f"Saved {len(customers)} customers to {filepath}")
