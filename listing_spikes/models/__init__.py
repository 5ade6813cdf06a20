"""Per-listing trend models, decomposition and clustering."""
from .smoothing import SmoothingError, LoessFit, TrendFitResult, loess_fit, fit_listing_trends
from .decomposition import DecompositionResult, add_weekday, add_periodic_component, decompose_listings
from .clustering import (
    AlignmentError,
    RemainderMatrix,
    KMeansFamily,
    build_remainder_matrix,
    fit_kmeans_family,
    select_elbow,
    assign_clusters,
    cluster_assignments,
    augment_clusters,
)
from .selection import select_cluster, attach_locations
