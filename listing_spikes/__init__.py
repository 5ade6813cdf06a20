"""
Listing price-spike analysis.

Modules:
- data: Loading and rule-based cleaning of calendar/listing tables
- features: Date windows and gap filling
- models: LOESS trend, weekly decomposition, k-means clustering, selection
- visualization: Plots and map overlay
- pipeline: End-to-end analysis
"""
