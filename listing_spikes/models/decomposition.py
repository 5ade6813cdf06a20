"""
Trend / weekly / remainder decomposition of listing price series.

    observed  = fitted + residual          (LOESS trend, smoothing.py)
    residual  = periodic + remainder       (weekday means, this module)

The periodic component is the mean residual of a listing on a given weekday,
so it is constant across all rows sharing that (listing, weekday) pair.
"""

from dataclasses import dataclass, field
from typing import Dict

import pandas as pd

from listing_spikes.config import DATE_COL, LISTING_COL, LOESS_SPAN, PPP_COL
from .smoothing import fit_listing_trends

WEEKDAYS = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']


@dataclass
class DecompositionResult:
    """Decomposed observations plus the listings whose trend fit failed."""
    data: pd.DataFrame
    failures: Dict[int, str] = field(default_factory=dict)

    @property
    def n_failed(self) -> int:
        return len(self.failures)


def add_weekday(df: pd.DataFrame) -> pd.DataFrame:
    """Add an ordered Monday..Sunday ``weekday`` categorical derived from date."""
    df = df.copy()
    df['weekday'] = pd.Categorical(
        pd.to_datetime(df[DATE_COL]).dt.day_name(),
        categories=WEEKDAYS,
        ordered=True
    )
    return df


def add_periodic_component(fitted: pd.DataFrame) -> pd.DataFrame:
    """
    Add the weekly periodic component and the remainder.

    Args:
        fitted: Observations with a ``residual`` column

    Returns:
        DataFrame with weekday, periodic and remainder columns added
    """
    df = add_weekday(fitted) if 'weekday' not in fitted.columns else fitted.copy()

    df['periodic'] = (
        df.groupby([LISTING_COL, 'weekday'], observed=True)['residual']
        .transform('mean')
    )
    df['remainder'] = df['residual'] - df['periodic']
    return df


def decompose_listings(
    observations: pd.DataFrame,
    span: float = LOESS_SPAN,
    value_col: str = PPP_COL
) -> DecompositionResult:
    """
    Decompose every listing's series into trend, periodic and remainder.

    Args:
        observations: One row per (listing_id, date) with value_col
        span: LOESS span shared by all listings
        value_col: Column to decompose

    Returns:
        DecompositionResult with columns fitted, se_fit, residual, weekday,
        periodic and remainder
    """
    trends = fit_listing_trends(observations, span=span, value_col=value_col)
    return DecompositionResult(
        data=add_periodic_component(trends.data),
        failures=trends.failures
    )
