"""
K-means clustering of listing remainder series.

Each listing is one point whose coordinates are its remainder values over the
target window. A family of k-means models is fitted over a range of cluster
counts; the within-cluster sum of squares per k drives the elbow choice.

Listing ids travel with the matrix rows (RemainderMatrix.listing_ids), so
labels are always re-keyed explicitly rather than by position in some
external table.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict

import numpy as np
import pandas as pd
from sklearn.cluster import KMeans

from listing_spikes.config import DATE_COL, K_MAX, K_MIN, LISTING_COL, N_INIT, RANDOM_STATE

logger = logging.getLogger(__name__)


class AlignmentError(ValueError):
    """Raised when cluster labels cannot be matched one-to-one with listings."""


@dataclass
class RemainderMatrix:
    """Dense listing x date matrix with the listing id of every row."""
    values: np.ndarray
    listing_ids: np.ndarray
    dates: pd.DatetimeIndex

    def __post_init__(self):
        if self.values.ndim != 2:
            raise AlignmentError(f"Matrix must be 2-D, got shape {self.values.shape}")
        if self.values.shape[0] != len(self.listing_ids):
            raise AlignmentError(
                f"{self.values.shape[0]} matrix rows but {len(self.listing_ids)} listing ids"
            )
        if self.values.shape[1] != len(self.dates):
            raise AlignmentError(
                f"{self.values.shape[1]} matrix columns but {len(self.dates)} dates"
            )

    @property
    def n_listings(self) -> int:
        return len(self.listing_ids)

    def to_frame(self) -> pd.DataFrame:
        """Wide DataFrame indexed by listing_id with one column per date."""
        return pd.DataFrame(
            self.values,
            index=pd.Index(self.listing_ids, name=LISTING_COL),
            columns=self.dates
        )


@dataclass
class KMeansFamily:
    """K-means models keyed by cluster count, with per-k diagnostics."""
    models: Dict[int, KMeans]
    summary: pd.DataFrame
    failures: Dict[int, str] = field(default_factory=dict)

    @property
    def n_failed(self) -> int:
        return len(self.failures)


def build_remainder_matrix(df: pd.DataFrame, value_col: str = 'remainder') -> RemainderMatrix:
    """
    Pivot long-format remainders into a dense listing x date matrix.

    Raises:
        ValueError: If the input is empty or any cell is missing
    """
    if df.empty:
        raise ValueError("Cannot build a remainder matrix from an empty frame")

    wide = (
        df.pivot(index=LISTING_COL, columns=DATE_COL, values=value_col)
        .sort_index()
        .sort_index(axis=1)
    )

    n_missing = int(wide.isna().to_numpy().sum())
    if n_missing:
        bad = wide.index[wide.isna().any(axis=1)].tolist()
        raise ValueError(
            f"Remainder matrix has {n_missing} missing cells in listings {bad}; "
            "drop incomplete listings first"
        )

    return RemainderMatrix(
        values=wide.to_numpy(dtype=float),
        listing_ids=wide.index.to_numpy(),
        dates=pd.DatetimeIndex(wide.columns)
    )


def fit_kmeans_family(
    matrix: RemainderMatrix,
    k_range: range = range(K_MIN, K_MAX + 1),
    n_init: int = N_INIT,
    random_state: int = RANDOM_STATE
) -> KMeansFamily:
    """
    Fit one k-means model per candidate cluster count.

    Summary columns:
    - k
    - tot_withinss: within-cluster sum of squares (inertia)
    - betweenss: totss - tot_withinss
    - totss: total sum of squares around the grand mean
    - n_iter: iterations of the best restart

    A k that cannot be fitted (e.g. more clusters than listings) is logged,
    recorded in ``failures`` and skipped.

    Raises:
        ValueError: If no k could be fitted
    """
    X = matrix.values
    totss = float(((X - X.mean(axis=0)) ** 2).sum())

    models = {}
    failures = {}
    rows = []
    for k in k_range:
        try:
            model = KMeans(n_clusters=k, n_init=n_init, random_state=random_state).fit(X)
        except ValueError as exc:
            failures[k] = str(exc)
            logger.warning(f"  ⚠️ Skipping k={k}: {exc}")
            continue

        models[k] = model
        rows.append({
            'k': k,
            'tot_withinss': float(model.inertia_),
            'betweenss': totss - float(model.inertia_),
            'totss': totss,
            'n_iter': int(model.n_iter_),
        })

    if not models:
        raise ValueError(f"No k-means model could be fitted for k in {list(k_range)}")

    summary = pd.DataFrame(rows, columns=['k', 'tot_withinss', 'betweenss', 'totss', 'n_iter'])
    logger.info(f"Fitted k-means for k={min(models)}..{max(models)} on {matrix.n_listings:,} listings")
    return KMeansFamily(models=models, summary=summary, failures=failures)


def select_elbow(summary: pd.DataFrame) -> int:
    """
    Pick k at the elbow of the within-cluster sum of squares curve.

    Rule: the k with the largest second difference
        W(k-1) - 2 W(k) + W(k+1)
    i.e. where the curve bends most sharply. With fewer than three fitted
    counts the smallest k is returned.
    """
    curve = summary.sort_values('k')
    ks = curve['k'].to_numpy()
    w = curve['tot_withinss'].to_numpy(dtype=float)

    if len(ks) < 3:
        return int(ks[0])

    second_diff = w[:-2] - 2 * w[1:-1] + w[2:]
    return int(ks[1:-1][np.argmax(second_diff)])


def assign_clusters(matrix: RemainderMatrix, model: KMeans) -> pd.Series:
    """
    Key a fitted model's labels by the listing ids of its matrix rows.

    Uses the labels from fitting (``labels_``), so ``model`` must have been
    fitted on ``matrix.values``. Labels are 1-based (cluster 1..k).

    Raises:
        AlignmentError: If the model was fitted on a different number of rows
    """
    labels = np.asarray(model.labels_)
    if len(labels) != matrix.n_listings:
        raise AlignmentError(
            f"Got {len(labels)} cluster labels for {matrix.n_listings} listings"
        )

    return pd.Series(
        labels + 1,
        index=pd.Index(matrix.listing_ids, name=LISTING_COL),
        name='cluster'
    )


def cluster_assignments(family: KMeansFamily, matrix: RemainderMatrix, k: int) -> pd.Series:
    """Cluster labels from the family's model with k clusters."""
    if k not in family.models:
        raise ValueError(f"No fitted model with k={k}. Available: {sorted(family.models)}")
    return assign_clusters(matrix, family.models[k])


def augment_clusters(window: pd.DataFrame, assignments: pd.Series) -> pd.DataFrame:
    """Attach cluster labels to long-format window rows by listing id."""
    return window.merge(
        assignments.reset_index(),
        on=LISTING_COL,
        how='inner',
        validate='many_to_one'
    )
