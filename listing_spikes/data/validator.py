"""
Data validation and cleaning using a unified Rule-based architecture.

Every cleaning step on the ``observations`` table is a Rule with a check_query
(how many rows are affected?) and an action_query (remove them). Rules run in
order; the per-listing history filter runs last so it counts only valid rows.
"""

import logging
from dataclasses import dataclass

import duckdb

logger = logging.getLogger(__name__)

# ============================================================================
# 1. RULE DATACLASS (Unified Format)
# ============================================================================

@dataclass
class Rule:
    """
    Single data quality rule.

    All operations follow the same pattern:
    1. Check query: How many rows are affected?
    2. Action query: Fix the issue
    """
    name: str
    check_query: str
    action_query: str
    enabled: bool = True

# ============================================================================
# 2. CLEANING CONFIG (Self-Documenting Configuration)
# ============================================================================

@dataclass
class CleaningConfig:
    """
    Configuration for the observation cleaning pipeline.

    Each field enables/disables a specific rule. The config itself IS the
    documentation - field names describe what they do.
    """
    # Incomplete rows (parse failures surface here as NULLs)
    remove_null_listing_id: bool = True
    remove_null_dates: bool = True
    remove_null_prices: bool = True
    remove_null_capacity: bool = True

    # Optional: keep only nights marked available
    remove_unavailable: bool = False

    # One row per (listing, date)
    remove_duplicate_dates: bool = True

    # Per-listing history filter
    remove_short_history: bool = True
    min_observations: int = 200

    # Logging
    verbose: bool = False

# ============================================================================
# 3. DATA CLEANER CLASS (Applies Rules)
# ============================================================================

class DataCleaner:
    """
    Applies observation cleaning rules based on configuration.

    Usage:
        config = CleaningConfig(min_observations=200, verbose=True)
        cleaner = DataCleaner(config)
        clean_con = cleaner.clean(build_observations(init_db()))
        cleaner.stats  # {'NULL Price': 1234, 'Insufficient History': 56789}
    """

    def __init__(self, config: CleaningConfig):
        self.config = config
        self.rules = self._build_rules()
        self.stats = {}

    def _build_rules(self) -> list[Rule]:
        """Build list of rules based on config."""
        rules = []

        # ===== INCOMPLETE ROWS =====
        if self.config.remove_null_listing_id:
            rules.append(Rule(
                "NULL Listing ID",
                "SELECT COUNT(*) FROM observations WHERE listing_id IS NULL",
                "DELETE FROM observations WHERE listing_id IS NULL"
            ))

        if self.config.remove_null_dates:
            rules.append(Rule(
                "NULL Date",
                'SELECT COUNT(*) FROM observations WHERE "date" IS NULL',
                'DELETE FROM observations WHERE "date" IS NULL'
            ))

        if self.config.remove_null_prices:
            rules.append(Rule(
                "NULL Price",
                "SELECT COUNT(*) FROM observations WHERE price IS NULL",
                "DELETE FROM observations WHERE price IS NULL"
            ))

        if self.config.remove_null_capacity:
            rules.append(Rule(
                "NULL Capacity",
                "SELECT COUNT(*) FROM observations WHERE accommodates IS NULL OR price_per_person IS NULL",
                "DELETE FROM observations WHERE accommodates IS NULL OR price_per_person IS NULL"
            ))

        if self.config.remove_unavailable:
            rules.append(Rule(
                "Unavailable Night",
                "SELECT COUNT(*) FROM observations WHERE available IS NOT TRUE",
                "DELETE FROM observations WHERE available IS NOT TRUE"
            ))

        # ===== UNIQUENESS =====
        if self.config.remove_duplicate_dates:
            rules.append(Rule(
                "Duplicate Listing Date",
                """SELECT COUNT(*) FROM observations
                   WHERE rowid NOT IN (
                       SELECT MIN(rowid) FROM observations GROUP BY listing_id, "date"
                   )""",
                """DELETE FROM observations
                   WHERE rowid NOT IN (
                       SELECT MIN(rowid) FROM observations GROUP BY listing_id, "date"
                   )"""
            ))

        # ===== PER-LISTING FILTER (must run last) =====
        if self.config.remove_short_history:
            min_obs = int(self.config.min_observations)
            rules.append(Rule(
                f"Insufficient History (<{min_obs} obs)",
                f"""SELECT COUNT(*) FROM observations
                    WHERE listing_id IN (
                        SELECT listing_id FROM observations
                        GROUP BY listing_id HAVING COUNT(*) < {min_obs}
                    )""",
                f"""DELETE FROM observations
                    WHERE listing_id IN (
                        SELECT listing_id FROM observations
                        GROUP BY listing_id HAVING COUNT(*) < {min_obs}
                    )"""
            ))

        return rules

    def clean(self, con: duckdb.DuckDBPyConnection) -> duckdb.DuckDBPyConnection:
        """
        Apply all enabled rules to the observations table.

        Row counts removed per rule are recorded in ``self.stats``.
        """
        if self.config.verbose:
            logger.info(f"Applying {len(self.rules)} data cleaning rules...")

        for rule in self.rules:
            if not rule.enabled:
                continue

            affected = con.execute(rule.check_query).fetchone()[0]

            if affected > 0:
                con.execute(rule.action_query)
                self.stats[rule.name] = affected

                if self.config.verbose:
                    logger.info(f"  ✓ {rule.name}: {affected:,} rows")
            elif self.config.verbose:
                logger.info(f"  - {rule.name}: 0 rows")

        if self.config.verbose:
            n_rows, n_listings = con.execute(
                "SELECT COUNT(*), COUNT(DISTINCT listing_id) FROM observations"
            ).fetchone()
            logger.info(f"\nFinal: {n_rows:,} observations, {n_listings:,} listings")

        return con


def check_data_quality(con: duckdb.DuckDBPyConnection, config: CleaningConfig = None) -> dict:
    """
    Check data quality without modifying data.

    Returns dict with the affected row count for each rule.
    """
    cleaner = DataCleaner(config or CleaningConfig())
    total = con.execute("SELECT COUNT(*) FROM observations").fetchone()[0]

    results = []
    for rule in cleaner.rules:
        failed = con.execute(rule.check_query).fetchone()[0]
        results.append({
            'name': rule.name,
            'failed': failed,
            'total': total,
            'pct': (failed / total * 100) if total > 0 else 0
        })

    return {
        'rules': results,
        'total_failed': sum(r['failed'] for r in results),
        'checks_passed': sum(1 for r in results if r['failed'] == 0),
        'total_checks': len(cleaner.rules)
    }
