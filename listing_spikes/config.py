"""
Configuration for the listing price-spike analysis.

Contains the column layout of the source files and the analysis
hyperparameters (smoothing span, cluster counts, target window).
"""

from dataclasses import dataclass, field
from typing import Optional


# =============================================================================
# SOURCE LAYOUT
# =============================================================================

# Default file names under the project data/ directory (Inside Airbnb layout)
CALENDAR_FILENAME = 'calendar.csv'
LISTINGS_FILENAME = 'listings.csv'

# Columns produced by the loader
LISTING_COL = 'listing_id'
DATE_COL = 'date'
PRICE_COL = 'price'
CAPACITY_COL = 'accommodates'
PPP_COL = 'price_per_person'


# =============================================================================
# ANALYSIS DEFAULTS
# =============================================================================

# Listings with fewer dated observations are dropped
MIN_OBSERVATIONS = 200

# LOESS smoothing span (fraction of each series used per local fit)
LOESS_SPAN = 0.5

# Candidate cluster counts and k-means restarts per count
K_MIN = 1
K_MAX = 10
N_INIT = 10
RANDOM_STATE = 42

# April: the month with the spike under study
TARGET_MONTH = 4

# Manually chosen model and cluster of interest
N_CLUSTERS = 2
CLUSTER_LABEL = 2


@dataclass
class AnalysisConfig:
    """
    Configuration for the full analysis pipeline.

    Each field is one recognized option. Leave ``n_clusters`` as None to let
    the elbow rule pick the cluster count.
    """
    # Cleaning
    min_observations: int = MIN_OBSERVATIONS
    remove_unavailable: bool = False

    # Trend smoothing
    span: float = LOESS_SPAN

    # Spike window
    target_month: int = TARGET_MONTH
    target_year: Optional[int] = None

    # Clustering
    k_range: range = field(default_factory=lambda: range(K_MIN, K_MAX + 1))
    n_init: int = N_INIT
    random_state: int = RANDOM_STATE
    n_clusters: Optional[int] = N_CLUSTERS
    cluster_label: int = CLUSTER_LABEL

    # Logging
    verbose: bool = False

    def __post_init__(self):
        if not 0 < self.span <= 1:
            raise ValueError(f"span must be in (0, 1], got {self.span}")
        if not 1 <= self.target_month <= 12:
            raise ValueError(f"target_month must be 1-12, got {self.target_month}")
        if self.min_observations < 1:
            raise ValueError(f"min_observations must be positive, got {self.min_observations}")
        if len(self.k_range) == 0 or min(self.k_range) < 1:
            raise ValueError(f"k_range must contain positive cluster counts, got {self.k_range}")
