# tests/test_domain_types.py
from datetime import datetime, timezone

from mlshub.domain.parsing import days_since, to_date, to_float, to_int, to_str_list
from mlshub.domain.types import Coordinates, PropertyListing, SearchCriteria


def test_parsing_helpers():
    assert to_float("$1,250,000") == 1250000.0
    assert to_float("nan") is None
    assert to_float(True) is None
    assert to_int("3.0") == 3
    assert to_int("three") is None
    assert to_str_list("a.jpg, b.jpg") == ["a.jpg", "b.jpg"]
    assert to_str_list([{"MediaURL": "m.jpg"}, "", 5]) == ["m.jpg"]


def test_to_date_is_always_aware_utc():
    assert to_date("2024-05-01") == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert to_date("2024-05-01T10:00:00Z").tzinfo is not None
    assert to_date(1714557600000) == to_date(1714557600)
    assert to_date("last tuesday") is None


def test_days_since_rounds_up_and_clamps_future():
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    assert days_since(datetime(2024, 5, 31, 23, tzinfo=timezone.utc), now) == 1
    assert days_since(datetime(2024, 5, 1, tzinfo=timezone.utc), now) == 31
    assert days_since(datetime(2024, 7, 1, tzinfo=timezone.utc), now) == 0
    assert days_since(None, now) == 0


def test_listing_dict_round_trip():
    listing = PropertyListing(
        id="X1",
        provider="acme",
        price=500000.0,
        coordinates=Coordinates(lat=43.7, lng=-79.4),
        listing_date=datetime(2024, 5, 1, tzinfo=timezone.utc),
        photos=["a.jpg"],
    )
    d = listing.to_dict()
    assert d["listingDate"] == "2024-05-01T00:00:00+00:00"
    assert d["bedrooms"] is None
    assert PropertyListing.from_dict(d) == listing


def test_search_criteria_cache_key_ignores_unset_filters():
    a = SearchCriteria(city="Toronto", max_price=900000)
    b = SearchCriteria(max_price=900000, city="Toronto", bedrooms=None)

    assert a.to_dict() == {"city": "Toronto", "maxPrice": 900000, "maxResults": 50, "offset": 0}
    assert a.cache_key() == b.cache_key()
    assert a.cache_key() != SearchCriteria(city="Ottawa", max_price=900000).cache_key()
