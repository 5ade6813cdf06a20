#!/usr/bin/env python
"""
Run the listing price-spike analysis.

Usage:
    python entrypoint/analyze.py
    python entrypoint/analyze.py --calendar data/calendar.csv --listings data/listings.csv
    python entrypoint/analyze.py --clusters auto --span 0.25 --month 4
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import logging

import matplotlib
matplotlib.use('Agg')

from listing_spikes.config import (
    CLUSTER_LABEL,
    K_MAX,
    K_MIN,
    LOESS_SPAN,
    MIN_OBSERVATIONS,
    N_CLUSTERS,
    N_INIT,
    TARGET_MONTH,
    AnalysisConfig,
)
from listing_spikes.data.loader import get_clean_connection
from listing_spikes.models.clustering import augment_clusters
from listing_spikes.pipeline import run_analysis
from listing_spikes.visualization.maps import create_cluster_map
from listing_spikes.visualization.plots import (
    plot_cluster_remainders,
    plot_decomposition,
    plot_elbow,
    plot_listing_facets,
    plot_price_series,
)


def _cluster_count(value: str):
    if value == 'auto':
        return None
    k = int(value)
    if k < 1:
        raise argparse.ArgumentTypeError(f"cluster count must be positive, got {k}")
    return k


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Isolate listings with a price spike')
    parser.add_argument('--calendar', type=str, default=None, help='Calendar CSV (default: data/calendar.csv)')
    parser.add_argument('--listings', type=str, default=None, help='Listings CSV (default: data/listings.csv)')
    parser.add_argument('--min-observations', type=int, default=MIN_OBSERVATIONS,
                        help='Drop listings with fewer dated observations')
    parser.add_argument('--available-only', action='store_true', help='Keep only nights marked available')
    parser.add_argument('--span', type=float, default=LOESS_SPAN, help='LOESS smoothing span')
    parser.add_argument('--month', type=int, default=TARGET_MONTH, help='Target month for the spike window')
    parser.add_argument('--year', type=int, default=None, help='Target year (default: every year)')
    parser.add_argument('--k-min', type=int, default=K_MIN, help='Smallest candidate cluster count')
    parser.add_argument('--k-max', type=int, default=K_MAX, help='Largest candidate cluster count')
    parser.add_argument('--n-init', type=int, default=N_INIT, help='K-means restarts per cluster count')
    parser.add_argument('--clusters', type=_cluster_count, default=N_CLUSTERS,
                        help="Chosen cluster count, or 'auto' for the elbow rule")
    parser.add_argument('--cluster-label', type=int, default=CLUSTER_LABEL, help='Cluster of interest')
    parser.add_argument('--output-dir', type=str, default='outputs/spikes', help='Directory for plots and map')
    parser.add_argument('--verbose', action='store_true', help='Log every cleaning rule')
    return parser


def config_from_args(args: argparse.Namespace) -> AnalysisConfig:
    return AnalysisConfig(
        min_observations=args.min_observations,
        remove_unavailable=args.available_only,
        span=args.span,
        target_month=args.month,
        target_year=args.year,
        k_range=range(args.k_min, args.k_max + 1),
        n_init=args.n_init,
        n_clusters=args.clusters,
        cluster_label=args.cluster_label,
        verbose=args.verbose,
    )


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format='%(message)s')
    config = config_from_args(args)
    output_dir = Path(args.output_dir)

    print("=" * 70)
    print("LISTING PRICE-SPIKE ANALYSIS")
    print("=" * 70)

    print("\n1. Loading and cleaning data...")
    con = get_clean_connection(args.calendar, args.listings, config)

    print("\n2. Decomposing and clustering...")
    result = run_analysis(con, config)

    print("\n3. Rendering plots...")
    decomposed = result.decomposition.data
    plot_price_series(decomposed, output_path=output_dir / 'price_series.png')
    plot_decomposition(decomposed, result.selected['listing_id'].iloc[0],
                       output_path=output_dir / 'decomposition.png')
    plot_listing_facets(decomposed, output_path=output_dir / 'remainder_facets.png')
    plot_elbow(result.family.summary, chosen_k=result.chosen_k, output_path=output_dir / 'elbow.png')
    plot_cluster_remainders(augment_clusters(result.window, result.assignments),
                            output_path=output_dir / 'cluster_remainders.png')

    print("\n4. Rendering map...")
    create_cluster_map(result.selected, output_path=output_dir / 'cluster_map.html')

    print("\n" + "=" * 70)
    print("ANALYSIS COMPLETE")
    print("=" * 70)
    print(f"\nListings analysed: {result.decomposition.data['listing_id'].nunique():,}")
    print(f"Trend fits failed: {result.n_failed_listings:,}")
    print(f"Cluster-count fits failed: {result.family.n_failed:,}")
    print(f"Complete in window: {result.matrix.n_listings:,}")
    print(f"Elbow k: {result.elbow_k}  |  Chosen k: {result.chosen_k}")
    print(f"Cluster {config.cluster_label}: {len(result.selected):,} listings")
    print(f"Outputs in: {output_dir}")


if __name__ == "__main__":
    main()
