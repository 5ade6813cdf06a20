"""
Visualization functions for the price-spike analysis.

Creates line charts of listing series, decomposition small multiples, the
elbow curve and remainder series faceted by cluster.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

logger = logging.getLogger(__name__)


def _save(fig: plt.Figure, output_path: Optional[Path]) -> None:
    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=150, bbox_inches='tight')
        logger.info(f"Saved to {output_path}")


def _sample_listings(df: pd.DataFrame, n_listings: int, random_state: int = 42) -> np.ndarray:
    ids = df['listing_id'].unique()
    if len(ids) <= n_listings:
        return ids
    rng = np.random.default_rng(random_state)
    return rng.choice(ids, size=n_listings, replace=False)


def plot_price_series(
    observations: pd.DataFrame,
    listing_ids: Optional[Sequence[int]] = None,
    n_listings: int = 10,
    output_path: Optional[Path] = None
) -> plt.Figure:
    """
    Plot price per person over time for a handful of listings.

    Args:
        observations: Cleaned observations (listing_id, date, price_per_person)
        listing_ids: Listings to show (random sample of n_listings if None)
        n_listings: Sample size when listing_ids is None
        output_path: Optional path to save figure

    Returns:
        matplotlib Figure
    """
    if listing_ids is None:
        listing_ids = _sample_listings(observations, n_listings)
    subset = observations[observations['listing_id'].isin(listing_ids)]

    fig, ax = plt.subplots(figsize=(14, 6))
    sns.lineplot(
        data=subset,
        x='date',
        y='price_per_person',
        hue='listing_id',
        palette='tab10',
        linewidth=1,
        legend=False,
        ax=ax
    )
    ax.set_xlabel('Date', fontsize=12)
    ax.set_ylabel('Price per Person', fontsize=12)
    ax.set_title(f'Nightly Price per Person\n(n={subset["listing_id"].nunique()} listings)', fontsize=14)
    ax.grid(axis='y', alpha=0.3)

    plt.tight_layout()
    _save(fig, output_path)
    return fig


def plot_decomposition(
    decomposed: pd.DataFrame,
    listing_id: int,
    output_path: Optional[Path] = None
) -> plt.Figure:
    """
    Plot observed series with LOESS trend, periodic component and remainder.

    The trend panel shades +/- 2 standard errors of the fit.
    """
    series = decomposed[decomposed['listing_id'] == listing_id].sort_values('date')
    if series.empty:
        raise ValueError(f"Listing {listing_id} not in decomposed data")

    fig, axes = plt.subplots(3, 1, figsize=(14, 10), sharex=True)

    ax1 = axes[0]
    ax1.plot(series['date'], series['price_per_person'], color='grey', alpha=0.6, label='Observed')
    ax1.plot(series['date'], series['fitted'], color='steelblue', linewidth=2, label='Trend (LOESS)')
    ax1.fill_between(
        series['date'],
        series['fitted'] - 2 * series['se_fit'],
        series['fitted'] + 2 * series['se_fit'],
        color='steelblue',
        alpha=0.2
    )
    ax1.set_ylabel('Price per Person', fontsize=11)
    ax1.set_title(f'Listing {listing_id}: Trend + Weekly + Remainder', fontsize=14)
    ax1.legend()

    ax2 = axes[1]
    ax2.plot(series['date'], series['periodic'], color='#2ecc71')
    ax2.axhline(0, color='black', linestyle='--', linewidth=1)
    ax2.set_ylabel('Weekly', fontsize=11)

    ax3 = axes[2]
    ax3.plot(series['date'], series['remainder'], color='#e74c3c')
    ax3.axhline(0, color='black', linestyle='--', linewidth=1)
    ax3.set_ylabel('Remainder', fontsize=11)
    ax3.set_xlabel('Date', fontsize=12)

    for ax in axes:
        ax.grid(axis='y', alpha=0.3)

    plt.tight_layout()
    _save(fig, output_path)
    return fig


def plot_listing_facets(
    decomposed: pd.DataFrame,
    listing_ids: Optional[Sequence[int]] = None,
    value_col: str = 'remainder',
    n_listings: int = 9,
    col_wrap: int = 3,
    output_path: Optional[Path] = None
) -> plt.Figure:
    """Small multiples of one component, one panel per listing."""
    if listing_ids is None:
        listing_ids = _sample_listings(decomposed, n_listings)
    subset = decomposed[decomposed['listing_id'].isin(listing_ids)]

    g = sns.relplot(
        data=subset,
        x='date',
        y=value_col,
        col='listing_id',
        col_wrap=col_wrap,
        kind='line',
        height=2.5,
        aspect=1.6,
        facet_kws={'sharey': False}
    )
    g.set_titles('Listing {col_name}')
    g.set_axis_labels('Date', value_col.replace('_', ' ').title())
    for ax in g.axes.flat:
        ax.tick_params(axis='x', rotation=45)

    _save(g.figure, output_path)
    return g.figure


def plot_elbow(
    summary: pd.DataFrame,
    chosen_k: Optional[int] = None,
    output_path: Optional[Path] = None
) -> plt.Figure:
    """
    Plot within-cluster sum of squares against k.

    Args:
        summary: KMeansFamily.summary
        chosen_k: Highlighted cluster count
        output_path: Optional path to save figure
    """
    curve = summary.sort_values('k')

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.plot(curve['k'], curve['tot_withinss'], marker='o', color='steelblue', linewidth=2)
    if chosen_k is not None and chosen_k in curve['k'].values:
        w = curve.loc[curve['k'] == chosen_k, 'tot_withinss'].iloc[0]
        ax.scatter([chosen_k], [w], s=200, facecolors='none', edgecolors='#e74c3c', linewidths=2,
                   label=f'k = {chosen_k}', zorder=3)
        ax.legend()
    ax.set_xticks(curve['k'])
    ax.set_xlabel('Number of Clusters (k)', fontsize=12)
    ax.set_ylabel('Total Within-Cluster Sum of Squares', fontsize=12)
    ax.set_title('Elbow Curve', fontsize=14)
    ax.grid(alpha=0.3)

    plt.tight_layout()
    _save(fig, output_path)
    return fig


def plot_cluster_remainders(
    clustered: pd.DataFrame,
    output_path: Optional[Path] = None
) -> plt.Figure:
    """
    Remainder series of every listing, one panel per cluster.

    Args:
        clustered: Long-format window with listing_id, date, remainder, cluster
        output_path: Optional path to save figure
    """
    g = sns.relplot(
        data=clustered,
        x='date',
        y='remainder',
        units='listing_id',
        estimator=None,
        col='cluster',
        kind='line',
        alpha=0.3,
        linewidth=0.8,
        height=4,
        aspect=1.2
    )
    sizes = clustered.groupby('cluster')['listing_id'].nunique()
    for cluster, ax in g.axes_dict.items():
        ax.set_title(f'Cluster {cluster} (n={sizes.get(cluster, 0)})')
        ax.axhline(0, color='black', linestyle='--', linewidth=1)
        ax.tick_params(axis='x', rotation=45)
    g.set_axis_labels('Date', 'Remainder')

    _save(g.figure, output_path)
    return g.figure
