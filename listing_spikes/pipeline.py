"""
End-to-end price-spike analysis.

Stages:
1. Load cleaned price-per-person observations
2. Decompose each listing into trend, weekly periodic and remainder
3. Fill gaps over the target month and keep complete listings
4. Fit k-means over candidate cluster counts, choose k
5. Select the cluster of interest and attach coordinates
"""

import logging
from dataclasses import dataclass
from typing import Optional

import duckdb
import pandas as pd

from listing_spikes.config import AnalysisConfig
from listing_spikes.data.loader import load_listing_attributes, load_observations
from listing_spikes.features.gaps import dense_window
from listing_spikes.models.clustering import (
    KMeansFamily,
    RemainderMatrix,
    build_remainder_matrix,
    cluster_assignments,
    fit_kmeans_family,
    select_elbow,
)
from listing_spikes.models.decomposition import DecompositionResult, decompose_listings
from listing_spikes.models.selection import attach_locations, select_cluster

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Every intermediate table of one analysis run."""
    config: AnalysisConfig
    observations: pd.DataFrame
    decomposition: DecompositionResult
    window: pd.DataFrame
    matrix: RemainderMatrix
    family: KMeansFamily
    elbow_k: int
    chosen_k: int
    assignments: pd.Series
    selected: pd.DataFrame

    @property
    def n_failed_listings(self) -> int:
        return self.decomposition.n_failed


def run_analysis(
    con: duckdb.DuckDBPyConnection,
    config: Optional[AnalysisConfig] = None
) -> AnalysisResult:
    """
    Run the analysis on a cleaned connection.

    Args:
        con: Connection holding cleaned ``observations`` and ``listings``
        config: Analysis options (defaults to AnalysisConfig())

    Returns:
        AnalysisResult
    """
    config = config or AnalysisConfig()

    observations = load_observations(con)
    if observations.empty:
        raise ValueError("No observations left after cleaning")
    logger.info(f"Loaded {len(observations):,} observations for {observations['listing_id'].nunique():,} listings")

    decomposition = decompose_listings(observations, span=config.span)
    if decomposition.n_failed:
        logger.warning(f"Trend fit failed for {decomposition.n_failed:,} listings")

    window = dense_window(decomposition.data, config.target_month, config.target_year)
    matrix = build_remainder_matrix(window)
    logger.info(f"Remainder matrix: {matrix.n_listings:,} listings x {len(matrix.dates)} dates")

    family = fit_kmeans_family(
        matrix,
        k_range=config.k_range,
        n_init=config.n_init,
        random_state=config.random_state
    )
    elbow_k = select_elbow(family.summary)
    chosen_k = config.n_clusters if config.n_clusters is not None else elbow_k
    logger.info(f"Elbow suggests k={elbow_k}; using k={chosen_k}")

    assignments = cluster_assignments(family, matrix, chosen_k)
    selected = attach_locations(
        select_cluster(assignments, config.cluster_label),
        load_listing_attributes(con)
    )
    logger.info(f"Cluster {config.cluster_label}: {len(selected):,} listings")

    return AnalysisResult(
        config=config,
        observations=observations,
        decomposition=decomposition,
        window=window,
        matrix=matrix,
        family=family,
        elbow_k=elbow_k,
        chosen_k=chosen_k,
        assignments=assignments,
        selected=selected,
    )
