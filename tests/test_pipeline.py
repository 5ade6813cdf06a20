"""
End-to-end tests for listing_spikes/pipeline.py and entrypoint/analyze.py.
"""

import importlib.util
from pathlib import Path

import duckdb
import pytest

from listing_spikes.config import AnalysisConfig
from listing_spikes.data.loader import build_observations, register_raw_tables
from listing_spikes.data.validator import CleaningConfig, DataCleaner
from listing_spikes.pipeline import run_analysis

SPIKE_IDS = [7, 8, 9, 10, 11]
FLAT_IDS = [1, 2, 3, 4, 5, 6]


def _load_cli():
    path = Path(__file__).parent.parent / 'entrypoint' / 'analyze.py'
    spec = importlib.util.spec_from_file_location('analyze', path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def market_connection(spike_market):
    calendar, listings = spike_market
    con = duckdb.connect(":memory:")
    register_raw_tables(con, calendar, listings)
    build_observations(con)
    return DataCleaner(CleaningConfig(min_observations=60)).clean(con)


@pytest.fixture
def analysis(market_connection):
    config = AnalysisConfig(min_observations=60, k_range=range(1, 6), n_clusters=2, cluster_label=1)
    return run_analysis(market_connection, config)


@pytest.mark.integration
class TestRunAnalysis:
    """Full run on a synthetic market with a mid-April spike."""

    def test_short_history_listing_dropped(self, analysis):
        """Listing 13 never reaches decomposition."""
        assert 13 not in analysis.observations['listing_id'].unique()

    def test_gappy_listing_excluded_from_matrix(self, analysis):
        """Listing 12 is decomposed but lacks an April date."""
        assert 12 in analysis.decomposition.data['listing_id'].unique()
        assert 12 not in analysis.matrix.listing_ids
        assert analysis.matrix.n_listings == 11
        assert len(analysis.matrix.dates) == 30

    def test_spike_listings_share_a_cluster(self, analysis):
        """Spiking and flat listings are separated."""
        labels = analysis.assignments
        assert labels[SPIKE_IDS].nunique() == 1
        assert labels[FLAT_IDS].nunique() == 1
        assert labels[SPIKE_IDS[0]] != labels[FLAT_IDS[0]]

    def test_chosen_k_follows_config(self, analysis):
        """An explicit cluster count overrides the elbow."""
        assert analysis.chosen_k == 2
        assert analysis.family.summary['k'].tolist() == [1, 2, 3, 4, 5]

    def test_selected_listings_have_coordinates(self, analysis):
        """Selected cluster carries coordinates from the listings table."""
        selected = analysis.selected
        assert (selected['cluster'] == 1).all()
        assert selected[['latitude', 'longitude']].notna().all().all()
        assert set(selected['listing_id']) <= set(analysis.matrix.listing_ids)

    def test_auto_k_uses_elbow(self, market_connection):
        """With n_clusters=None the elbow k is used."""
        config = AnalysisConfig(min_observations=60, k_range=range(1, 6), n_clusters=None, cluster_label=1)
        result = run_analysis(market_connection, config)
        assert result.chosen_k == result.elbow_k

    def test_missing_cluster_label_raises(self, market_connection):
        """Asking for a cluster beyond k fails clearly."""
        config = AnalysisConfig(min_observations=60, k_range=range(1, 4), n_clusters=2, cluster_label=3)
        with pytest.raises(ValueError, match="Cluster 3 not found"):
            run_analysis(market_connection, config)


class TestCli:
    """Argument parsing for entrypoint/analyze.py."""

    def test_defaults(self):
        """Test that defaults mirror AnalysisConfig."""
        cli = _load_cli()
        config = cli.config_from_args(cli.build_parser().parse_args([]))
        default = AnalysisConfig()

        assert config.span == default.span
        assert config.target_month == 4
        assert list(config.k_range) == list(default.k_range)
        assert config.n_clusters == 2
        assert config.cluster_label == 2

    def test_auto_clusters(self):
        """Test that 'auto' defers the cluster count to the elbow rule."""
        cli = _load_cli()
        args = cli.build_parser().parse_args(['--clusters', 'auto', '--k-max', '6'])
        config = cli.config_from_args(args)

        assert config.n_clusters is None
        assert list(config.k_range) == [1, 2, 3, 4, 5, 6]

    def test_invalid_span_rejected(self):
        """Test that AnalysisConfig validation reaches the CLI."""
        cli = _load_cli()
        with pytest.raises(ValueError, match="span"):
            cli.config_from_args(cli.build_parser().parse_args(['--span', '1.5']))

    @pytest.mark.integration
    def test_main_writes_outputs(self, spike_market, tmp_path, capsys):
        """Test a full CLI run from CSV files, with k above the listing count."""
        calendar, listings = spike_market
        calendar_path = tmp_path / 'calendar.csv'
        listings_path = tmp_path / 'listings.csv'
        calendar.to_csv(calendar_path, index=False)
        listings.to_csv(listings_path, index=False)
        output_dir = tmp_path / 'out'

        cli = _load_cli()
        cli.main([
            '--calendar', str(calendar_path),
            '--listings', str(listings_path),
            '--min-observations', '60',
            '--k-max', '13',
            '--n-init', '3',
            '--cluster-label', '1',
            '--output-dir', str(output_dir),
        ])

        for name in ['price_series.png', 'decomposition.png', 'remainder_facets.png',
                     'elbow.png', 'cluster_remainders.png', 'cluster_map.html']:
            assert (output_dir / name).exists(), name

        out = capsys.readouterr().out
        assert 'Complete in window: 11' in out
        assert 'Cluster-count fits failed: 2' in out
