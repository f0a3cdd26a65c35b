"""Tests for CSV ingestion and export."""

import logging

import numpy as np
import pytest

from customer_api import SEGMENTS, segment_willingness_to_pay
from data_loader import (
    load_customers_from_csv,
    load_stores_from_csv,
    save_customers_to_csv,
    save_stores_to_csv,
)
from restaurant_api import load_default_restaurants

STORE_HEADER = "store_id,store_name,branch,average_bags_at_9AM,average_overall_rating,price,longitude,latitude\n"


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestLoadStores:

    def test_basic_file(self, tmp_path):
        path = _write(tmp_path / "stores.csv", STORE_HEADER
                      + "1,Krispy Kreme,Zamalek,10,4.8,80,31.22,30.05\n"
                      + "2,Costa Coffee,Zamalek,8,4.3,85,31.24,30.07\n"
                      + "3,Koshary Tahrir,Downtown,5,6.0,40,31.23,30.04\n")
        stores = load_stores_from_csv(path)

        assert [s.business_id for s in stores] == [1, 2, 3]
        assert [s.business_type for s in stores] == ["bakery", "cafe", "restaurant"]
        assert stores[0].estimated_bags == 10
        assert stores[0].price_per_bag == 80.0
        assert stores[2].general_ranking == 5.0

    def test_explicit_type_column_wins(self, tmp_path):
        header = STORE_HEADER.strip() + ",type\n"
        path = _write(tmp_path / "stores.csv", header + "1,Starbucks,Zamalek,10,4.5,100,31.23,30.06,bakery\n")
        assert load_stores_from_csv(path)[0].business_type == "bakery"

    def test_spaced_inventory_header(self, tmp_path):
        header = STORE_HEADER.replace("average_bags_at_9AM", "average bags at 9AM")
        path = _write(tmp_path / "stores.csv", header + "1,Paul,Zamalek,12,4.6,90,31.26,30.09\n")
        assert load_stores_from_csv(path)[0].estimated_bags == 12

    def test_missing_column(self, tmp_path):
        path = _write(tmp_path / "stores.csv",
                      "store_id,store_name,average_bags_at_9AM,price,longitude,latitude\n"
                      "1,Paul,12,90,31.26,30.09\n")
        with pytest.raises(ValueError):
            load_stores_from_csv(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_stores_from_csv(str(tmp_path / "nope.csv"))

    @pytest.mark.parametrize("row", [
        "1,Paul,Zamalek,12,4.6,0,31.26,30.09\n",
        "1,Paul,Zamalek,-1,4.6,90,31.26,30.09\n",
        "1,Paul,Zamalek,12,4.6,90,inf,30.09\n",
    ])
    def test_invalid_values(self, tmp_path, row):
        path = _write(tmp_path / "stores.csv", STORE_HEADER + row)
        with pytest.raises(ValueError):
            load_stores_from_csv(path)

    def test_duplicate_ids(self, tmp_path):
        path = _write(tmp_path / "stores.csv", STORE_HEADER
                      + "1,Paul,Zamalek,12,4.6,90,31.26,30.09\n"
                      + "1,Costa,Zamalek,8,4.3,85,31.24,30.07\n")
        with pytest.raises(ValueError):
            load_stores_from_csv(path)


class TestLoadCustomers:

    def test_aliases_and_valuations(self, tmp_path):
        path = _write(tmp_path / "customers.csv",
                      "CustomerID,lon,lat,segment,wtp,store1_valuation\n"
                      "7,31.25,30.05,premium,250,3.5\n")
        customers = load_customers_from_csv(path)

        assert len(customers) == 1
        customer = customers[0]
        assert customer.customer_id == 7
        assert customer.longitude == 31.25
        assert customer.segment == "premium"
        assert customer.willingness_to_pay == 250.0
        assert customer.store_valuations == {1: 3.5}
        assert 3.5 <= customer.leaving_threshold <= 4.5

    def test_missing_fields_filled_from_segment(self, tmp_path):
        path = _write(tmp_path / "customers.csv",
                      "customer_id,longitude,latitude\n"
                      "1,31.25,30.05\n"
                      "2,31.26,30.06\n")
        customers = load_customers_from_csv(path, seed=3)

        for customer in customers:
            assert customer.segment in SEGMENTS
            assert customer.willingness_to_pay > 0
            assert customer.weights.rating_w > 0
        again = load_customers_from_csv(path, seed=3)
        assert [c.willingness_to_pay for c in again] == [c.willingness_to_pay for c in customers]

    def test_missing_willingness_drawn_from_segment_band(self, tmp_path):
        path = _write(tmp_path / "customers.csv",
                      "customer_id,longitude,latitude,segment\n"
                      "1,31.25,30.05,budget\n")
        customer = load_customers_from_csv(path, seed=21)[0]

        assert customer.willingness_to_pay == segment_willingness_to_pay("budget", np.random.RandomState(21))
        assert 80.0 <= customer.willingness_to_pay < 120.0

    def test_unknown_segment(self, tmp_path):
        path = _write(tmp_path / "customers.csv",
                      "customer_id,longitude,latitude,segment\n"
                      "1,31.25,30.05,vip\n")
        with pytest.raises(ValueError):
            load_customers_from_csv(path)

    def test_missing_location(self, tmp_path):
        path = _write(tmp_path / "customers.csv", "customer_id,segment\n1,budget\n")
        with pytest.raises(ValueError):
            load_customers_from_csv(path)


class TestSave:

    def test_save_logs_count(self, tmp_path, caplog):
        with caplog.at_level(logging.INFO, logger="data_loader"):
            save_stores_to_csv(load_default_restaurants(), str(tmp_path / "stores.csv"))
        assert "Saved 15 stores" in caplog.text

    def test_generated_data_loads_back(self, tmp_path, rng):
        from customer_api import generate_customers

        stores = load_default_restaurants()
        customers = generate_customers(5, stores, rng)
        stores_path = str(tmp_path / "stores.csv")
        customers_path = str(tmp_path / "customers.csv")

        save_stores_to_csv(stores, stores_path)
        save_customers_to_csv(customers, customers_path)

        loaded_stores = load_stores_from_csv(stores_path)
        loaded_customers = load_customers_from_csv(customers_path)
        assert [s.business_type for s in loaded_stores] == [s.business_type for s in stores]
        assert [c.segment for c in loaded_customers] == [c.segment for c in customers]
        assert loaded_customers[0].willingness_to_pay == pytest.approx(customers[0].willingness_to_pay)
