"""
Map overlay of selected listings.

Renders one marker per listing of the cluster of interest on a Folium tile map.
"""

import logging
from pathlib import Path
from typing import Optional

import folium
import pandas as pd

logger = logging.getLogger(__name__)


def create_cluster_map(
    listings: pd.DataFrame,
    output_path: Optional[str] = None,
    title: str = "Listings with an April price spike",
    color: str = '#e74c3c'
) -> folium.Map:
    """
    Create a Folium map of listing locations.

    Parameters
    ----------
    listings : pd.DataFrame
        Listings with listing_id, latitude, longitude (accommodates and
        cluster are shown in the popup when present)
    output_path : str, optional
        If provided, saves the map to this HTML file path
    title : str
        Title displayed on the map
    color : str
        Marker colour

    Returns
    -------
    folium.Map
        Map object that can be displayed in Jupyter

    Raises
    ------
    ValueError
        If no listing has coordinates
    """
    located = listings.dropna(subset=['latitude', 'longitude'])
    if located.empty:
        raise ValueError("No listing has coordinates to map")
    if len(located) < len(listings):
        logger.warning(f"  ⚠️ {len(listings) - len(located)} listings without coordinates not mapped")

    m = folium.Map(
        location=[located['latitude'].mean(), located['longitude'].mean()],
        zoom_start=12,
        tiles='CartoDB positron',
        control_scale=True
    )

    for row in located.itertuples(index=False):
        popup = f"Listing {row.listing_id}"
        if 'accommodates' in located.columns and pd.notna(row.accommodates):
            popup += f"<br>Accommodates: {int(row.accommodates)}"
        if 'cluster' in located.columns:
            popup += f"<br>Cluster: {row.cluster}"
        folium.CircleMarker(
            location=[row.latitude, row.longitude],
            radius=5,
            color=color,
            fill=True,
            fill_color=color,
            fill_opacity=0.7,
            popup=folium.Popup(popup, max_width=200)
        ).add_to(m)

    m.fit_bounds([
        [located['latitude'].min(), located['longitude'].min()],
        [located['latitude'].max(), located['longitude'].max()]
    ])

    title_html = f"""
    <div style="
        position: fixed;
        top: 10px;
        left: 50px;
        z-index: 9999;
        background: white;
        padding: 8px 12px;
        border-radius: 6px;
        box-shadow: 0 2px 6px rgba(0,0,0,0.3);
    ">
        <strong style="font-size: 13px;">{title}</strong>
        <span style="font-size: 11px; color: #666; margin-left: 8px;">n={len(located)}</span>
    </div>
    """
    m.get_root().html.add_child(folium.Element(title_html))

    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        m.save(str(output_path))
        logger.info(f"Saved to: {output_path}")

    return m
