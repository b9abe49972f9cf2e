"""Web Mercator (EPSG:3857) tile math.

Tiles follow the XYZ scheme used by Leaflet/OpenLayers: zoom z splits the
world into 2^z x 2^z tiles, row 0 is the northernmost row.
"""

from typing import List, Tuple, Union

import numpy as np

# atan(sinh(pi)) in degrees: the latitude where the square Mercator world ends
MAX_LATITUDE = 85.0511287798066

TILE_SIZE = 256

ArrayLike = Union[float, np.ndarray]


def tile_to_lonlat(x: ArrayLike, y: ArrayLike, z: int) -> Tuple[ArrayLike, ArrayLike]:
    """
    Inverse projection of (possibly fractional) tile coordinates.

    Args:
        x: Tile column, may be fractional (x + px / tile_size)
        y: Tile row, may be fractional
        z: Zoom level

    Returns:
        (lon, lat) in degrees, same shape as the inputs
    """
    n = 2.0 ** z
    lon = (np.asarray(x, dtype=np.float64) / n) * 360.0 - 180.0
    lat = np.degrees(np.arctan(np.sinh(np.pi * (1.0 - 2.0 * np.asarray(y, dtype=np.float64) / n))))
    if np.ndim(lon) == 0:
        return float(lon), float(lat)
    return lon, lat


def tile_to_lonlat_bounds(tile) -> Tuple[float, float, float, float]:
    """
    Get geographic bounds of a tile.

    Args:
        tile: Anything with integer x, y, z attributes

    Returns:
        (lon_min, lon_max, lat_min, lat_max) in degrees
    """
    lon_min, lat_max = tile_to_lonlat(tile.x, tile.y, tile.z)
    lon_max, lat_min = tile_to_lonlat(tile.x + 1, tile.y + 1, tile.z)
    return lon_min, lon_max, lat_min, lat_max


def tile_lonlat_grid(tile, tile_size: int = TILE_SIZE) -> Tuple[np.ndarray, np.ndarray]:
    """
    Return lon/lat of every pixel of an XYZ tile.

    Each pixel is projected on its own, so the latitude spacing follows the
    Mercator stretch instead of a linear blend of the tile corners.

    Output shapes: (tile_size, tile_size)
    Row 0 is the NORTH edge of the tile, column 0 the WEST edge.
    """
    offsets = np.arange(tile_size, dtype=np.float64) / tile_size
    uu, vv = np.meshgrid(offsets, offsets)  # (rows, cols) = (y, x)
    return tile_to_lonlat(tile.x + uu, tile.y + vv, tile.z)


def mercator_valid(lat: ArrayLike) -> ArrayLike:
    """True where a latitude lies inside the Web Mercator square."""
    return np.abs(lat) <= MAX_LATITUDE + 1e-9


def lon_lat_to_tile(lon: float, lat: float, z: int) -> Tuple[int, int, int]:
    """
    Tile containing a WGS84 point.

    Latitudes beyond the Mercator limit are clamped; the antimeridian and
    the poles map onto the last column/row.

    Returns:
        (x, y, z)
    """
    n = 2 ** z
    lat = float(np.clip(lat, -MAX_LATITUDE, MAX_LATITUDE))
    lat_rad = np.radians(lat)
    xtile = (lon + 180.0) / 360.0 * n
    ytile = (1.0 - np.log(np.tan(lat_rad) + 1.0 / np.cos(lat_rad)) / np.pi) / 2.0 * n
    x = min(max(int(np.floor(xtile)), 0), n - 1)
    y = min(max(int(np.floor(ytile)), 0), n - 1)
    return x, y, z


def tiles_for_bounds(
    lon_min: float, lon_max: float, lat_min: float, lat_max: float, z: int
) -> List[Tuple[int, int, int]]:
    """
    All (x, y, z) tiles intersecting a lon/lat box at zoom z.

    Longitudes in the 0..360 convention are folded back to -180..180; a box
    that then crosses the antimeridian covers the full width.
    """
    if lon_max > 180.0:
        if lon_min >= 180.0:
            lon_min, lon_max = lon_min - 360.0, lon_max - 360.0
        else:
            lon_min, lon_max = -180.0, 180.0
    x0, y0, _ = lon_lat_to_tile(lon_min, lat_max, z)
    x1, y1, _ = lon_lat_to_tile(lon_max, lat_min, z)
    return [(x, y, z) for y in range(y0, y1 + 1) for x in range(x0, x1 + 1)]
