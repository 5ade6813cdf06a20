"""Date windows and missing-data handling."""
from .gaps import (
    month_window,
    complete_listing_dates,
    missing_summary,
    drop_incomplete_listings,
    dense_window,
)
