"""Shared fixtures for the marketplace tests."""

import numpy as np
import pytest

from marketplace import MarketState, Reservation, Timestamp
from restaurant_api import Restaurant
from customer_api import Customer, Weights

CENTER_LON = 31.25
CENTER_LAT = 30.05


@pytest.fixture
def make_store():
    def _make(store_id, rating=4.0, estimated=10, price=100.0, lon=CENTER_LON, lat=CENTER_LAT,
              business_type="bakery", name=None, actual=None):
        store = Restaurant(store_id, name or f"Store {store_id}", "Zamalek", estimated, rating,
                           price, lon, lat, business_type)
        if actual is not None:
            store.set_actual_inventory(actual)
        return store
    return _make


@pytest.fixture
def make_customer():
    def _make(customer_id=1, segment="regular", lon=CENTER_LON, lat=CENTER_LAT, wtp=200.0,
              weights=None, leaving_threshold=0.0, loyalty=0.8):
        return Customer(customer_id, longitude=lon, latitude=lat, segment=segment,
                        willingness_to_pay=wtp, weights=weights or Weights(1.0, 1.0, 0.5),
                        leaving_threshold=leaving_threshold, loyalty=loyalty)
    return _make


@pytest.fixture
def add_pending(make_customer):
    """Register a customer and append a PENDING reservation for them."""
    def _add(market, store_id, customer_id, hour=9, minute=0):
        customer = market.register_customer(make_customer(customer_id))
        reservation = Reservation(market.allocate_reservation_id(), customer.customer_id,
                                  store_id, Timestamp(hour, minute))
        customer.record_reservation_attempt(store_id, market.get_restaurant(store_id).business_type,
                                            reservation.reservation_time)
        market.get_restaurant(store_id).reserved_count += 1
        market.reservations.append(reservation)
        return reservation
    return _add


@pytest.fixture
def rng():
    return np.random.RandomState(42)


@pytest.fixture
def cairo_market():
    from restaurant_api import load_default_restaurants
    return MarketState(load_default_restaurants())
