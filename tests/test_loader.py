"""
Tests for listing_spikes/data/loader.py - raw table casting and observations.
"""

import duckdb
import pandas as pd
import pytest

from listing_spikes.data.loader import (
    build_observations,
    init_db,
    load_listing_attributes,
    load_observations,
    register_raw_tables,
)


class TestRawCasting:
    """Test TRY_CAST typing of the raw tables."""

    def test_currency_strings_parsed(self, observations_connection):
        """Test that '$1,250.00' becomes 1250.0."""
        prices = observations_connection.execute(
            "SELECT price FROM calendar WHERE listing_id = 1 ORDER BY \"date\""
        ).fetchdf()['price'].tolist()
        assert prices == [100.0, 1250.0, 90.0]

    def test_malformed_values_become_null(self, observations_connection):
        """Test that unparseable prices, dates and ids become NULL."""
        con = observations_connection
        assert con.execute("SELECT COUNT(*) FROM calendar WHERE price IS NULL").fetchone()[0] == 1
        assert con.execute('SELECT COUNT(*) FROM calendar WHERE "date" IS NULL').fetchone()[0] == 1
        assert con.execute("SELECT COUNT(*) FROM calendar WHERE listing_id IS NULL").fetchone()[0] == 1

    def test_availability_parsed_to_boolean(self, observations_connection):
        """Test that 't'/'f' flags become booleans."""
        unavailable = observations_connection.execute(
            "SELECT COUNT(*) FROM calendar WHERE available = FALSE"
        ).fetchone()[0]
        assert unavailable == 1

    def test_listing_columns_typed(self, observations_connection):
        """Test that only the used listing columns are kept, typed."""
        listings = load_listing_attributes(observations_connection)
        assert list(listings.columns) == ['listing_id', 'accommodates', 'latitude', 'longitude']
        assert listings['latitude'].dtype == float
        assert listings['listing_id'].tolist() == [1, 2, 4]


class TestBuildObservations:
    """Test the calendar/listings join and price per person."""

    def test_price_per_person(self, observations_connection):
        """Test that price is divided by capacity."""
        df = observations_connection.execute("""
            SELECT price_per_person FROM observations
            WHERE listing_id = 1 ORDER BY "date"
        """).fetchdf()
        assert df['price_per_person'].tolist() == [50.0, 625.0, 45.0]

    def test_unmatched_listing_gets_null_capacity(self, observations_connection):
        """Test that calendar rows without listing attributes keep NULL capacity."""
        row = observations_connection.execute("""
            SELECT accommodates, price_per_person FROM observations WHERE listing_id = 3
        """).fetchone()
        assert row == (None, None)

    def test_all_calendar_rows_kept(self, observations_connection):
        """Test that the left join neither drops nor duplicates rows."""
        n = observations_connection.execute("SELECT COUNT(*) FROM observations").fetchone()[0]
        assert n == 9

    def test_zero_capacity_fails_loudly(self, raw_calendar, raw_listings):
        """Test that a zero-capacity listing raises instead of yielding NULL."""
        raw_listings = raw_listings.copy()
        raw_listings.loc[0, 'accommodates'] = '0'
        con = register_raw_tables(duckdb.connect(":memory:"), raw_calendar, raw_listings)

        with pytest.raises(ZeroDivisionError, match=r"\[1\]"):
            build_observations(con)


class TestInitDb:
    """Test loading from CSV files."""

    def test_init_db_from_csv(self, tmp_path, raw_calendar, raw_listings):
        """Test that CSV files load with the same casting rules."""
        calendar_path = tmp_path / 'calendar.csv'
        listings_path = tmp_path / 'listings.csv'
        raw_calendar.to_csv(calendar_path, index=False)
        raw_listings.to_csv(listings_path, index=False)

        con = build_observations(init_db(str(calendar_path), str(listings_path)))

        assert con.execute("SELECT COUNT(*) FROM calendar").fetchone()[0] == len(raw_calendar)
        assert con.execute("SELECT MAX(price) FROM calendar").fetchone()[0] == 1250.0

    def test_quote_in_path(self, tmp_path, raw_calendar, raw_listings):
        """Test that a directory name with an apostrophe loads."""
        data_dir = tmp_path / "o'connell"
        data_dir.mkdir()
        raw_calendar.to_csv(data_dir / 'calendar.csv', index=False)
        raw_listings.to_csv(data_dir / 'listings.csv', index=False)

        con = init_db(str(data_dir / 'calendar.csv'), str(data_dir / 'listings.csv'))

        assert con.execute("SELECT COUNT(*) FROM listings").fetchone()[0] == len(raw_listings)

    def test_missing_file_raises(self, tmp_path):
        """Test that a missing input file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            init_db(str(tmp_path / 'nope.csv'), str(tmp_path / 'nope2.csv'))


class TestLoadObservations:
    """Test fetching observations as a DataFrame."""

    def test_sorted_with_datetime_dates(self, observations_connection):
        """Test ordering by listing then date and datetime dtype."""
        con = observations_connection
        con.execute('DELETE FROM observations WHERE listing_id IS NULL OR "date" IS NULL')
        df = load_observations(con)

        assert pd.api.types.is_datetime64_any_dtype(df['date'])
        assert df['listing_id'].is_monotonic_increasing
        for _, group in df.groupby('listing_id'):
            assert group['date'].is_monotonic_increasing
