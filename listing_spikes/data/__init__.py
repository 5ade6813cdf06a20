"""Data loading and validation utilities."""
from .loader import (
    init_db,
    register_raw_tables,
    build_observations,
    get_clean_connection,
    load_observations,
    load_listing_attributes,
)
from .validator import Rule, CleaningConfig, DataCleaner, check_data_quality
