"""
Selection of the cluster of interest and its listing locations.
"""

import pandas as pd

from listing_spikes.config import LISTING_COL


def select_cluster(assignments: pd.Series, label: int) -> pd.DataFrame:
    """
    Listings assigned to one cluster.

    Args:
        assignments: Cluster labels keyed by listing_id
        label: Cluster of interest

    Returns:
        DataFrame with listing_id and cluster

    Raises:
        ValueError: If no listing carries the label
    """
    selected = assignments[assignments == label]
    if selected.empty:
        raise ValueError(
            f"Cluster {label} not found. Labels present: {sorted(assignments.unique().tolist())}"
        )
    return selected.rename('cluster').reset_index()


def attach_locations(selected: pd.DataFrame, listings: pd.DataFrame) -> pd.DataFrame:
    """
    Join listing capacity and coordinates onto selected listings.

    Args:
        selected: DataFrame with listing_id
        listings: Listing attributes (listing_id, accommodates, latitude, longitude)
    """
    return selected.merge(listings, on=LISTING_COL, how='left', validate='one_to_one')
