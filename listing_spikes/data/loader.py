"""
Data loading utilities for the listing price-spike analysis.

Loads the calendar and listing CSVs into DuckDB, casts them to typed tables and
projects the price-per-person observations used downstream.
"""

import logging
from pathlib import Path
from typing import Optional

import duckdb
import pandas as pd

from listing_spikes.config import CALENDAR_FILENAME, LISTINGS_FILENAME, AnalysisConfig
from .validator import CleaningConfig, DataCleaner

logger = logging.getLogger(__name__)


# Currency symbols, thousand separators and whitespace stripped before casting
_PRICE_JUNK_PATTERN = r'[$€£,\s]'


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent.parent


def _text(column: str) -> str:
    """SQL expression turning a raw column into trimmed text, '' and 'NULL' as NULL."""
    return f"NULLIF(NULLIF(TRIM(CAST({column} AS VARCHAR)), ''), 'NULL')"


def _quote_path(path: Path) -> str:
    """Escape a file path for use inside a SQL string literal."""
    return str(path).replace("'", "''")


def _cast_raw_tables(con: duckdb.DuckDBPyConnection, calendar_src: str, listings_src: str) -> None:
    """Create the typed calendar and listings tables from raw (all-text) sources."""
    con.execute(f"""
        CREATE OR REPLACE TABLE calendar AS
        SELECT
            TRY_CAST({_text('listing_id')} AS BIGINT) AS listing_id,
            TRY_CAST({_text('"date"')} AS DATE) AS "date",
            TRY_CAST(
                NULLIF(REGEXP_REPLACE({_text('price')}, '{_PRICE_JUNK_PATTERN}', '', 'g'), '')
                AS DOUBLE
            ) AS price,
            TRY_CAST({_text('available')} AS BOOLEAN) AS available
        FROM {calendar_src}
    """)
    con.execute(f"""
        CREATE OR REPLACE TABLE listings AS
        SELECT
            TRY_CAST({_text('id')} AS BIGINT) AS listing_id,
            TRY_CAST({_text('accommodates')} AS INTEGER) AS accommodates,
            TRY_CAST({_text('latitude')} AS DOUBLE) AS latitude,
            TRY_CAST({_text('longitude')} AS DOUBLE) AS longitude
        FROM {listings_src}
    """)


def init_db(
    calendar_path: Optional[str] = None,
    listings_path: Optional[str] = None,
    db_path: str = ":memory:"
) -> duckdb.DuckDBPyConnection:
    """
    Load raw calendar and listing CSVs into DuckDB.

    Every column is read as text and cast with TRY_CAST, so malformed values
    become NULL instead of failing the load.

    Args:
        calendar_path: Calendar CSV (defaults to data/calendar.csv)
        listings_path: Listings CSV (defaults to data/listings.csv)
        db_path: DuckDB database path

    Returns:
        Connection with typed ``calendar`` and ``listings`` tables
    """
    data_dir = get_project_root() / "data"
    calendar_path = Path(calendar_path) if calendar_path else data_dir / CALENDAR_FILENAME
    listings_path = Path(listings_path) if listings_path else data_dir / LISTINGS_FILENAME

    for path in (calendar_path, listings_path):
        if not path.exists():
            raise FileNotFoundError(f"Input file not found: {path}")

    con = duckdb.connect(database=db_path, read_only=False)
    con.execute(f"""
        CREATE TEMP TABLE temp_calendar AS
        SELECT * FROM read_csv_auto('{_quote_path(calendar_path)}', all_varchar=True, header=True)
    """)
    con.execute(f"""
        CREATE TEMP TABLE temp_listings AS
        SELECT * FROM read_csv_auto('{_quote_path(listings_path)}', all_varchar=True, header=True)
    """)
    _cast_raw_tables(con, "temp_calendar", "temp_listings")
    con.execute("DROP TABLE temp_calendar")
    con.execute("DROP TABLE temp_listings")

    n_calendar = con.execute("SELECT COUNT(*) FROM calendar").fetchone()[0]
    n_listings = con.execute("SELECT COUNT(*) FROM listings").fetchone()[0]
    logger.info(f"Loaded {calendar_path.name} ({n_calendar:,} rows) and {listings_path.name} ({n_listings:,} rows)")
    return con


def register_raw_tables(
    con: duckdb.DuckDBPyConnection,
    calendar_raw: pd.DataFrame,
    listings_raw: pd.DataFrame
) -> duckdb.DuckDBPyConnection:
    """
    Load in-memory raw tables with the same casting rules as ``init_db``.

    Args:
        con: Target connection
        calendar_raw: Raw calendar with listing_id, date, available, price
        listings_raw: Raw listings with id, accommodates, latitude, longitude

    Returns:
        The same connection, now holding ``calendar`` and ``listings``
    """
    con.register("raw_calendar", calendar_raw)
    con.register("raw_listings", listings_raw)
    try:
        _cast_raw_tables(con, "raw_calendar", "raw_listings")
    finally:
        con.unregister("raw_calendar")
        con.unregister("raw_listings")
    return con


def build_observations(con: duckdb.DuckDBPyConnection) -> duckdb.DuckDBPyConnection:
    """
    Join calendar onto listings and project price per person.

    Unmatched listings get NULL capacity (removed by the cleaner). A capacity
    of zero is not guarded against and raises.

    Raises:
        ZeroDivisionError: If any calendar row joins to a zero-capacity listing
    """
    zero_capacity = con.execute("""
        SELECT DISTINCT c.listing_id
        FROM calendar c
        JOIN listings l ON c.listing_id = l.listing_id
        WHERE l.accommodates = 0
        ORDER BY c.listing_id
    """).fetchall()
    if zero_capacity:
        ids = [row[0] for row in zero_capacity]
        raise ZeroDivisionError(f"Listings with zero accommodation capacity: {ids}")

    con.execute("""
        CREATE OR REPLACE TABLE observations AS
        SELECT
            c.listing_id,
            c."date",
            c.price,
            c.available,
            l.accommodates,
            c.price / l.accommodates AS price_per_person
        FROM calendar c
        LEFT JOIN listings l ON c.listing_id = l.listing_id
    """)
    return con


def get_clean_connection(
    calendar_path: Optional[str] = None,
    listings_path: Optional[str] = None,
    config: Optional[AnalysisConfig] = None
) -> duckdb.DuckDBPyConnection:
    """
    Initialize database, build observations and apply the cleaning rules.

    Args:
        calendar_path: Calendar CSV path
        listings_path: Listings CSV path
        config: Analysis options (minimum history, availability filter)

    Returns:
        Cleaned DuckDB connection
    """
    config = config or AnalysisConfig()
    con = build_observations(init_db(calendar_path, listings_path))
    cleaner = DataCleaner(CleaningConfig(
        min_observations=config.min_observations,
        remove_unavailable=config.remove_unavailable,
        verbose=config.verbose
    ))
    return cleaner.clean(con)


def load_observations(con: duckdb.DuckDBPyConnection) -> pd.DataFrame:
    """
    Load price-per-person observations ordered by listing and date.

    Returns DataFrame with:
    - listing_id, date
    - price, accommodates, price_per_person
    """
    df = con.execute("""
        SELECT listing_id, "date", price, accommodates, price_per_person
        FROM observations
        ORDER BY listing_id, "date"
    """).fetchdf()
    df['date'] = pd.to_datetime(df['date'])
    return df


def load_listing_attributes(con: duckdb.DuckDBPyConnection) -> pd.DataFrame:
    """Load listing id, capacity and coordinates."""
    return con.execute("""
        SELECT listing_id, accommodates, latitude, longitude
        FROM listings
        WHERE listing_id IS NOT NULL
        ORDER BY listing_id
    """).fetchdf()
