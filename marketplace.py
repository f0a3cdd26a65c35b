# -*- coding: utf-8 -*-
"""
Marketplace Module
Shared world state for one simulated day:
- Timestamp (minute-resolution time of day)
- Reservation records and their lifecycle
- MarketState (store table, customer registry, reservation log, impressions)
"""

import functools
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from restaurant_api import Restaurant
    from customer_api import Customer

DAY_START_HOUR = 8

# customers do not travel further than this (flat lon/lat degrees)
MAX_TRAVEL_DISTANCE = 0.05


def flat_distance(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Euclidean distance in degrees, no earth curvature."""
    return math.sqrt((lon1 - lon2) ** 2 + (lat1 - lat2) ** 2)


@functools.total_ordering
@dataclass(frozen=True)
class Timestamp:
    """Time of day with minute resolution, ordered by minutes since midnight."""

    hour: int = DAY_START_HOUR
    minute: int = 0

    def to_minutes(self) -> int:
        return self.hour * 60 + self.minute

    def __lt__(self, other: "Timestamp") -> bool:
        if not isinstance(other, Timestamp):
            return NotImplemented
        return self.to_minutes() < other.to_minutes()

    def __eq__(self, other) -> bool:
        if not isinstance(other, Timestamp):
            return NotImplemented
        return self.to_minutes() == other.to_minutes()

    def __hash__(self) -> int:
        return hash(self.to_minutes())

    def __str__(self) -> str:
        return f"{self.hour}:{self.minute:02d}"


class ReservationStatus(Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class Reservation:
    """A customer's claim on one store's surprise bags, settled at end of day."""

    def __init__(self, reservation_id: int, customer_id: int, restaurant_id: int,
                 reservation_time: Timestamp):
        self.reservation_id = reservation_id
        self.customer_id = customer_id
        self.restaurant_id = restaurant_id
        self.reservation_time = reservation_time
        self.status = ReservationStatus.PENDING
        self.bags_received = 0

    @property
    def is_pending(self) -> bool:
        return self.status == ReservationStatus.PENDING

    def confirm(self, bags: int) -> None:
        if not self.is_pending:
            raise ValueError(f"Reservation {self.reservation_id} already {self.status.value}")
        self.status = ReservationStatus.CONFIRMED
        self.bags_received = bags

    def cancel(self) -> None:
        if not self.is_pending:
            raise ValueError(f"Reservation {self.reservation_id} already {self.status.value}")
        self.status = ReservationStatus.CANCELLED
        self.bags_received = 0

    def to_dict(self) -> Dict:
        return {
            'reservation_id': self.reservation_id,
            'customer_id': self.customer_id,
            'restaurant_id': self.restaurant_id,
            'reservation_time': str(self.reservation_time),
            'status': self.status.value,
            'bags_received': self.bags_received,
        }

    def __repr__(self) -> str:
        return (f"Reservation(id={self.reservation_id}, customer={self.customer_id}, "
                f"store={self.restaurant_id}, time={self.reservation_time}, "
                f"status={self.status.value}, bags={self.bags_received})")


class MarketState:
    """
    Mutable world shared by the display, decision and settlement steps.

    Stores keep their insertion order, which is the tie-break order for every
    ranking strategy. The id index is rebuilt whenever the store list is replaced.
    impression_counts survives reset_day() so that fairness-aware strategies
    see exposure accumulated over a multi-day run.
    """

    def __init__(self, restaurants: Optional[List["Restaurant"]] = None):
        self.restaurants: List["Restaurant"] = []
        self._restaurant_index: Dict[int, "Restaurant"] = {}
        self.customers: Dict[int, "Customer"] = {}
        self.reservations: List[Reservation] = []
        self.current_time = Timestamp(DAY_START_HOUR, 0)
        self.next_reservation_id = 1
        self.impression_counts: Dict[int, int] = {}

        if restaurants is not None:
            self.set_restaurants(restaurants)

    def set_restaurants(self, restaurants: List["Restaurant"]) -> None:
        self.restaurants = list(restaurants)
        self.rebuild_index()

    def rebuild_index(self) -> None:
        self._restaurant_index = {r.business_id: r for r in self.restaurants}

    def get_restaurant(self, restaurant_id: int) -> Optional["Restaurant"]:
        return self._restaurant_index.get(restaurant_id)

    def get_customer(self, customer_id: int) -> Optional["Customer"]:
        return self.customers.get(customer_id)

    def register_customer(self, customer: "Customer") -> "Customer":
        """Add a customer to today's registry; an already registered id keeps its record."""
        return self.customers.setdefault(customer.customer_id, customer)

    def get_available_restaurant_ids(self) -> List[int]:
        """Ids of stores still accepting reservations, in store insertion order."""
        return [r.business_id for r in self.restaurants if r.can_accept_reservation()]

    def allocate_reservation_id(self) -> int:
        reservation_id = self.next_reservation_id
        self.next_reservation_id += 1
        return reservation_id

    def record_impressions(self, store_ids: List[int]) -> None:
        for store_id in store_ids:
            self.impression_counts[store_id] = self.impression_counts.get(store_id, 0) + 1

    def reservations_for(self, restaurant_id: int) -> List[Reservation]:
        return [r for r in self.reservations if r.restaurant_id == restaurant_id]

    def reset_day(self) -> None:
        """Clear per-day state; the store table and impression counts are kept."""
        self.reservations = []
        self.customers = {}
        self.current_time = Timestamp(DAY_START_HOUR, 0)
        self.next_reservation_id = 1

    def reset_impressions(self) -> None:
        self.impression_counts = {}
