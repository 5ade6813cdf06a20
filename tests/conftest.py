"""
Shared pytest fixtures for the loader, models and pipeline tests.
"""

import matplotlib
matplotlib.use('Agg')

import duckdb
import numpy as np
import pandas as pd
import pytest

from listing_spikes.data.loader import build_observations, register_raw_tables


@pytest.fixture
def raw_calendar():
    """Sample calendar with currency strings, bad values and a duplicate."""
    return pd.DataFrame({
        'listing_id': ['1', '1', '1', '2', '2', '2', '3', 'NULL', '2'],
        'date': ['2024-04-01', '2024-04-02', '2024-04-03', '2024-04-01', '2024-04-02',
                 'not-a-date', '2024-04-01', '2024-04-01', '2024-04-01'],
        'available': ['t', 'f', 't', 't', 't', 't', 't', 't', 't'],
        'price': ['$100.00', '$1,250.00', '$90.00', '$60.00', 'abc', '$60.00', '$80.00', '$50.00', '$60.00'],
    })


@pytest.fixture
def raw_listings():
    """Sample listing attributes (listing 3 is missing, listing 4 has no calendar)."""
    return pd.DataFrame({
        'id': ['1', '2', '4'],
        'name': ['Flat near the beach', 'Studio', 'Loft'],
        'accommodates': ['2', '3', '4'],
        'latitude': ['41.3851', '41.3902', '41.4036'],
        'longitude': ['2.1734', '2.1540', '2.1744'],
    })


@pytest.fixture
def observations_connection(raw_calendar, raw_listings):
    """Connection with typed tables and the uncleaned observations table."""
    con = duckdb.connect(":memory:")
    register_raw_tables(con, raw_calendar, raw_listings)
    return build_observations(con)


def make_series(listing_id, start, values):
    """Observations for one listing on consecutive days starting at start."""
    dates = pd.date_range(start, periods=len(values), freq='D')
    return pd.DataFrame({
        'listing_id': listing_id,
        'date': dates,
        'price_per_person': np.asarray(values, dtype=float),
    })


@pytest.fixture
def series_factory():
    """Factory building one listing's observations from a list of values."""
    return make_series


@pytest.fixture
def scenario_observations():
    """
    Three listings over four weeks starting Monday 2024-04-01.

    A: constant 50
    B: 50 on weekdays, 70 on Saturday/Sunday
    C: 50 with a +10 spike on day 5 (Friday 2024-04-05)
    """
    n_days = 28
    dates = pd.date_range('2024-04-01', periods=n_days, freq='D')

    a = np.full(n_days, 50.0)
    b = np.where(dates.dayofweek >= 5, 70.0, 50.0)
    c = np.full(n_days, 50.0)
    c[4] = 60.0

    return pd.concat([
        make_series(1, '2024-04-01', a),
        make_series(2, '2024-04-01', b),
        make_series(3, '2024-04-01', c),
    ], ignore_index=True)


@pytest.fixture
def spike_market():
    """
    Raw calendar/listings for twelve listings from March to May 2024.

    Listings 1-6 follow a weekly pattern only; 7-12 add a +80 spike on
    April 10-15. Listing 12 has no row for April 20 and listing 13 has only
    20 nights of history.
    """
    rng = np.random.default_rng(0)
    dates = pd.date_range('2024-03-01', '2024-05-31', freq='D')
    spike = (dates >= '2024-04-10') & (dates <= '2024-04-15')

    rows = []
    for listing_id in range(1, 13):
        base = 40.0 + 5 * listing_id
        nightly = base + np.where(dates.dayofweek >= 4, 30.0, 0.0) + rng.normal(0, 2, len(dates))
        if listing_id >= 7:
            nightly = nightly + np.where(spike, 80.0, 0.0)
        for date, price in zip(dates, nightly):
            if listing_id == 12 and date == pd.Timestamp('2024-04-20'):
                continue
            rows.append({
                'listing_id': str(listing_id),
                'date': date.strftime('%Y-%m-%d'),
                'available': 't',
                'price': f"${price:,.2f}",
            })
    for date in dates[:20]:
        rows.append({'listing_id': '13', 'date': date.strftime('%Y-%m-%d'), 'available': 't', 'price': '$100.00'})

    calendar = pd.DataFrame(rows)
    listings = pd.DataFrame({
        'id': [str(i) for i in range(1, 14)],
        'accommodates': ['2'] * 13,
        'latitude': [f"{41.38 + 0.001 * i:.4f}" for i in range(1, 14)],
        'longitude': [f"{2.17 + 0.001 * i:.4f}" for i in range(1, 14)],
    })
    return calendar, listings
