"""
Per-listing LOESS trend model.

Fits one local linear regression of price per person against date for every
listing independently (statsmodels ``lowess``, tricube weights over the
floor(n * span) nearest dates, no robustness iterations), then merges fitted
values, standard errors and residuals back onto the observations by
(listing_id, date).

Without robustness iterations the smoother is linear, fitted = L @ y, so the
columns of L are the smooths of the unit vectors. Standard errors follow:
    sigma^2 = RSS / trace((I - L)^T (I - L))
    se_i    = sigma * ||L_i||
"""

import logging
from dataclasses import dataclass, field
from typing import Dict

import numpy as np
import pandas as pd
from statsmodels.nonparametric.smoothers_lowess import lowess

from listing_spikes.config import DATE_COL, LISTING_COL, LOESS_SPAN, PPP_COL

logger = logging.getLogger(__name__)

# The q-th neighbour sits on the radius and gets zero weight, so a local
# line needs q >= 3
MIN_NEIGHBOURS = 3

_EPOCH = pd.Timestamp('1970-01-01')


class SmoothingError(ValueError):
    """Raised when a series cannot be smoothed (too short, flat dates, degenerate fit)."""


@dataclass
class LoessFit:
    """Result of a single-series LOESS fit."""
    fitted: np.ndarray
    se_fit: np.ndarray
    residuals: np.ndarray
    sigma: float
    enp: float  # equivalent number of parameters, trace(L)


@dataclass
class TrendFitResult:
    """Fitted observations plus the listings whose fit failed."""
    data: pd.DataFrame
    failures: Dict[int, str] = field(default_factory=dict)
    n_listings: int = 0

    @property
    def n_failed(self) -> int:
        return len(self.failures)


def _lowess(y: np.ndarray, x: np.ndarray, span: float) -> np.ndarray:
    return lowess(y, x, frac=span, it=0, delta=0.0, missing='none', return_sorted=False)


def _check_positions(x: np.ndarray, span: float) -> None:
    n = len(x)
    q = int(np.floor(n * span))
    if q < MIN_NEIGHBOURS:
        raise SmoothingError(
            f"span={span} gives {q} neighbours for {n} points; "
            f"a local line needs at least {MIN_NEIGHBOURS}"
        )
    if np.unique(x).size < 2:
        raise SmoothingError("All observations share one date")


def smoother_matrix(x: np.ndarray, span: float = LOESS_SPAN) -> np.ndarray:
    """
    Build the LOESS hat matrix L for sample points x.

    Row i holds the weights that map observations to the fitted value at x[i].

    Args:
        x: Sample positions (e.g. date ordinals)
        span: Fraction of points in each local neighbourhood

    Returns:
        (n, n) smoother matrix

    Raises:
        SmoothingError: If the neighbourhoods are too small or the fit is degenerate
    """
    x = np.asarray(x, dtype=float)
    _check_positions(x, span)

    basis = np.eye(len(x))
    L = np.column_stack([_lowess(e, x, span) for e in basis])
    if not np.all(np.isfinite(L)):
        raise SmoothingError("Degenerate local fit (repeated dates within a neighbourhood)")
    return L


def loess_fit(x: np.ndarray, y: np.ndarray, span: float = LOESS_SPAN) -> LoessFit:
    """
    Fit a LOESS curve and return fitted values, standard errors and residuals.

    Args:
        x: Sample positions
        y: Observed values
        span: Fraction of points in each local neighbourhood

    Returns:
        LoessFit with residuals == y - fitted

    Raises:
        SmoothingError: If the series cannot be smoothed
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.shape != y.shape:
        raise ValueError(f"x and y must have the same shape, got {x.shape} and {y.shape}")
    if not np.all(np.isfinite(y)):
        raise SmoothingError("Series contains missing or infinite values")

    L = smoother_matrix(x, span=span)
    fitted = _lowess(y, x, span)
    residuals = y - fitted

    delta1 = float(np.sum((np.eye(len(x)) - L) ** 2))
    if delta1 <= 1e-10:
        raise SmoothingError("No residual degrees of freedom; increase span")

    sigma = float(np.sqrt(residuals @ residuals / delta1))
    se_fit = sigma * np.sqrt(np.sum(L ** 2, axis=1))

    return LoessFit(
        fitted=fitted,
        se_fit=se_fit,
        residuals=residuals,
        sigma=sigma,
        enp=float(np.trace(L))
    )


def date_ordinal(dates: pd.Series) -> np.ndarray:
    """Convert dates to days since 1970-01-01."""
    return ((pd.to_datetime(dates) - _EPOCH) / pd.Timedelta(days=1)).to_numpy(dtype=float)


def fit_listing_trends(
    observations: pd.DataFrame,
    span: float = LOESS_SPAN,
    value_col: str = PPP_COL
) -> TrendFitResult:
    """
    Fit an independent LOESS trend per listing.

    A listing whose fit fails is logged and left out; the rest of the batch
    still runs.

    Args:
        observations: One row per (listing_id, date) with value_col
        span: Global smoothing span shared by every listing
        value_col: Column to smooth

    Returns:
        TrendFitResult whose data adds fitted, se_fit and residual columns
    """
    fits = []
    failures = {}
    groups = observations.groupby(LISTING_COL, sort=True)

    for listing_id, group in groups:
        group = group.sort_values(DATE_COL)
        try:
            fit = loess_fit(date_ordinal(group[DATE_COL]), group[value_col].to_numpy(), span=span)
        except SmoothingError as exc:
            failures[listing_id] = str(exc)
            logger.warning(f"  ⚠️ Skipping listing {listing_id}: {exc}")
            continue

        fits.append(pd.DataFrame({
            LISTING_COL: listing_id,
            DATE_COL: group[DATE_COL].to_numpy(),
            'fitted': fit.fitted,
            'se_fit': fit.se_fit,
            'residual': fit.residuals,
        }))

    if fits:
        fitted = pd.concat(fits, ignore_index=True)
    else:
        fitted = pd.DataFrame({
            LISTING_COL: pd.Series(dtype=observations[LISTING_COL].dtype),
            DATE_COL: pd.Series(dtype=observations[DATE_COL].dtype),
            'fitted': pd.Series(dtype=float),
            'se_fit': pd.Series(dtype=float),
            'residual': pd.Series(dtype=float),
        })

    # Key join, not positional concatenation
    data = observations.merge(fitted, on=[LISTING_COL, DATE_COL], how='inner', validate='one_to_one')
    data = data.sort_values([LISTING_COL, DATE_COL]).reset_index(drop=True)

    n_listings = groups.ngroups
    logger.info(f"Fitted LOESS trends for {n_listings - len(failures):,}/{n_listings:,} listings (span={span})")

    return TrendFitResult(data=data, failures=failures, n_listings=n_listings)
