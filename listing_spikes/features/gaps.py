"""
Explicit and implicit missing data over a date window.

Explicit gap: the (listing, date) row exists but its value is NULL.
Implicit gap: the row is absent although both the listing and the date
appear elsewhere in the window.

Implicit gaps are made explicit by left-joining the data onto the full
listing x date cross product; listings with any gap are then dropped so the
window can be pivoted into a fully dense matrix.
"""

from typing import Optional

import pandas as pd

from listing_spikes.config import DATE_COL, LISTING_COL


def month_window(df: pd.DataFrame, month: int, year: Optional[int] = None) -> pd.DataFrame:
    """
    Restrict observations to one calendar month.

    Args:
        df: Observations with a date column
        month: Month number (1-12)
        year: Optional year; all years are kept when None

    Raises:
        ValueError: If no observation falls in the window
    """
    dates = pd.to_datetime(df[DATE_COL])
    mask = dates.dt.month == month
    if year is not None:
        mask &= dates.dt.year == year

    window = df.loc[mask].reset_index(drop=True)
    if window.empty:
        suffix = f"/{year}" if year is not None else ""
        raise ValueError(f"No observations in month {month}{suffix}")
    return window


def complete_listing_dates(df: pd.DataFrame) -> pd.DataFrame:
    """
    Make implicit gaps explicit.

    Returns one row per (listing, date) in the cross product of the distinct
    listings and distinct dates of ``df``; pairs absent from ``df`` carry NULL
    in every other column.
    """
    listings = pd.Index(df[LISTING_COL].unique()).sort_values()
    dates = pd.Index(df[DATE_COL].unique()).sort_values()
    full = pd.MultiIndex.from_product(
        [listings, dates], names=[LISTING_COL, DATE_COL]
    ).to_frame(index=False)

    return full.merge(df, on=[LISTING_COL, DATE_COL], how='left', validate='one_to_one')


def missing_summary(df: pd.DataFrame, value_col: str = 'remainder') -> pd.DataFrame:
    """Count missing values per listing (listing_id, n_dates, n_missing)."""
    summary = df.groupby(LISTING_COL).agg(
        n_dates=(DATE_COL, 'size'),
        n_missing=(value_col, lambda s: int(s.isna().sum()))
    ).reset_index()
    return summary


def drop_incomplete_listings(df: pd.DataFrame, value_col: str = 'remainder') -> pd.DataFrame:
    """Drop every listing with at least one missing value_col."""
    incomplete = df.loc[df[value_col].isna(), LISTING_COL].unique()
    return df.loc[~df[LISTING_COL].isin(incomplete)].reset_index(drop=True)


def dense_window(
    df: pd.DataFrame,
    month: int,
    year: Optional[int] = None,
    value_col: str = 'remainder'
) -> pd.DataFrame:
    """
    Month window with implicit gaps filled and incomplete listings dropped.

    Returns long-format listing_id, date, value_col with no missing values.

    Raises:
        ValueError: If the window is empty or no listing is complete
    """
    window = month_window(df[[LISTING_COL, DATE_COL, value_col]], month, year)
    completed = complete_listing_dates(window)
    dense = drop_incomplete_listings(completed, value_col=value_col)
    if dense.empty:
        raise ValueError(f"No listing has a complete {value_col} series in month {month}")
    return dense
