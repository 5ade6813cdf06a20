"""
Walkthrough: Which listings spiked their prices in April?

Question: After removing each listing's long-run trend and its weekly rhythm,
which listings show the same unexplained price jump during one month?

This analysis:
- Builds a price-per-person series for every listing
- Decomposes each series into trend, weekly and remainder components
- Makes missing listing/date pairs explicit over April
- Clusters the April remainders and maps the spiking cluster
"""

# %%
import sys
sys.path.insert(0, '..')
import logging
import pandas as pd
import matplotlib.pyplot as plt

from listing_spikes.config import AnalysisConfig
from listing_spikes.data.loader import (
    init_db,
    build_observations,
    load_observations,
    load_listing_attributes,
)
from listing_spikes.data.validator import CleaningConfig, DataCleaner
from listing_spikes.models.decomposition import decompose_listings
from listing_spikes.features.gaps import month_window, complete_listing_dates, drop_incomplete_listings, missing_summary
from listing_spikes.models.clustering import (
    build_remainder_matrix,
    fit_kmeans_family,
    select_elbow,
    cluster_assignments,
    augment_clusters,
)
from listing_spikes.models.selection import select_cluster, attach_locations
from listing_spikes.visualization.plots import (
    plot_price_series,
    plot_decomposition,
    plot_listing_facets,
    plot_elbow,
    plot_cluster_remainders,
)
from listing_spikes.visualization.maps import create_cluster_map

logging.basicConfig(level=logging.INFO, format='%(message)s')
config = AnalysisConfig(verbose=True)

# %% [markdown]
# ## 1. Load and clean
#
# The calendar gives one price per listing per night; the listings table gives
# how many guests each listing sleeps. Dividing the two puts a four-bed flat and
# a studio on the same scale. Listings with less than `min_observations`
# nights of history are dropped whole: a smoother needs a long series.

# %%
con = build_observations(init_db())

cleaner = DataCleaner(CleaningConfig(min_observations=config.min_observations, verbose=True))
con = cleaner.clean(con)
print(cleaner.stats)

observations = load_observations(con)
print(f"{len(observations):,} observations, {observations['listing_id'].nunique():,} listings")
observations.head()

# %%
plot_price_series(observations)
plt.show()

# %% [markdown]
# ## 2. Trend: one LOESS fit per listing
#
# Each listing gets its own local regression of price per person on date. The
# span is shared by all listings, so some series are over- or under-smoothed.
# The residual is whatever the trend leaves behind.

# %%
decomposition = decompose_listings(observations, span=config.span)
decomposed = decomposition.data
print(f"Trend fit failed for {decomposition.n_failed} listings")
decomposed.head()

# %% [markdown]
# ## 3. Weekly rhythm
#
# Weekend nights cost more. Averaging each listing's residual by weekday gives
# the weekly (periodic) component; subtracting it leaves the remainder.

# %%
example_id = decomposed['listing_id'].iloc[0]
plot_decomposition(decomposed, example_id)
plt.show()

# %%
plot_listing_facets(decomposed, value_col='remainder')
plt.show()

# %% [markdown]
# ## 4. April, with gaps made explicit
#
# Some listing/date pairs are simply absent from the calendar (implicit
# missing data). Completing the listing x date grid turns them into NaN so
# they can be counted, then listings with any gap are dropped: k-means needs
# every listing to have a value on every April date.

# %%
april = month_window(decomposed[['listing_id', 'date', 'remainder']], config.target_month)
completed = complete_listing_dates(april)
print(f"Rows before: {len(april):,}  after completing the grid: {len(completed):,}")

gaps = missing_summary(completed)
print(f"Listings with at least one gap: {(gaps['n_missing'] > 0).sum():,}")

window = drop_incomplete_listings(completed)
matrix = build_remainder_matrix(window)
print(f"Matrix: {matrix.n_listings:,} listings x {len(matrix.dates)} dates")

# %% [markdown]
# ## 5. Clustering the April remainders
#
# Each listing is a point in "remainder on each April date" space. We fit
# k-means for k = 1..10 with 10 restarts each and look for the elbow in the
# within-cluster sum of squares.

# %%
family = fit_kmeans_family(matrix, k_range=config.k_range, n_init=config.n_init)
elbow_k = select_elbow(family.summary)
print(family.summary)
print(f"Elbow rule suggests k={elbow_k}")

plot_elbow(family.summary, chosen_k=config.n_clusters)
plt.show()

# %%
assignments = cluster_assignments(family, matrix, config.n_clusters)
clustered = augment_clusters(window, assignments)
plot_cluster_remainders(clustered)
plt.show()

# %% [markdown]
# ## 6. Where are the spiking listings?
#
# One cluster shows a shared jump in the remainder. Check which label it got
# in the plot above and set `cluster_label` accordingly.

# %%
selected = attach_locations(
    select_cluster(assignments, config.cluster_label),
    load_listing_attributes(con)
)
print(f"Cluster {config.cluster_label}: {len(selected):,} listings")

m = create_cluster_map(selected)
m
