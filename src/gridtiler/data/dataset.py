"""In-memory lat/lon grid with coordinate lookup and bilinear sampling.

A Dataset is loaded once (see `read_grid` for the netCDF side), validated,
and then only read. Axes may be ascending or descending independently;
every lookup goes through a binary search that handles both directions.
"""

from pathlib import Path
from typing import NamedTuple, Optional, Tuple, Union

import numpy as np
import xarray as xr
from loguru import logger

RESAMPLING_METHODS = ("bilinear", "nearest")


class DatasetError(ValueError):
    """Raised when a grid cannot be loaded or violates the grid invariants."""


class Cell(NamedTuple):
    """Bracketing indices and fractional offsets of a point inside the grid.

    The point lies between lat[i_lat] and lat[i_lat + 1] at fraction t_lat
    (0 at i_lat, 1 at i_lat + 1), and likewise along longitude.
    """
    i_lat: int
    i_lon: int
    t_lat: float
    t_lon: float


def bracket_many(axis: np.ndarray, values: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Vectorised bracketing search on a strictly monotonic axis.

    Args:
        axis: 1D coordinate axis, ascending or descending, at least 2 samples
        values: Query coordinates (any shape)

    Returns:
        (idx, valid): idx[k] is the lower index of the interval
        [axis[idx], axis[idx + 1]] enclosing values[k]; valid is False where
        the value lies outside the axis range (or is NaN).
    """
    axis = np.asarray(axis, dtype=np.float64)
    values = np.asarray(values, dtype=np.float64)
    if axis[0] > axis[-1]:
        # negating a descending axis makes it ascending with the same indices
        axis, values = -axis, -values
    idx = np.searchsorted(axis, values, side="right") - 1
    idx = np.clip(idx, 0, axis.size - 2)
    valid = (values >= axis[0]) & (values <= axis[-1])
    return idx, valid


def bracket(axis: np.ndarray, value: float) -> Optional[int]:
    """Lower index of the interval enclosing `value`, None outside the axis."""
    idx, valid = bracket_many(axis, np.asarray([value], dtype=np.float64))
    if not valid[0]:
        return None
    return int(idx[0])


def _bilinear(
    values: np.ndarray,
    i_lat: np.ndarray,
    i_lon: np.ndarray,
    t_lat: np.ndarray,
    t_lon: np.ndarray,
) -> np.ndarray:
    # corners with zero weight are skipped so a NaN neighbour cannot spoil
    # a sample sitting exactly on a grid line
    corners = (
        (values[i_lat, i_lon], (1.0 - t_lat) * (1.0 - t_lon)),
        (values[i_lat, i_lon + 1], (1.0 - t_lat) * t_lon),
        (values[i_lat + 1, i_lon], t_lat * (1.0 - t_lon)),
        (values[i_lat + 1, i_lon + 1], t_lat * t_lon),
    )
    out = np.zeros(np.shape(t_lat), dtype=np.float64)
    for v, w in corners:
        out = out + np.where(w == 0.0, 0.0, w * v)
    return out


def _as_axis(coords, name: str) -> Tuple[np.ndarray, bool]:
    """Copy and validate a coordinate axis. Returns (axis, ascending)."""
    try:
        axis = np.array(coords, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise DatasetError(f"{name} values are not numeric: {e}") from e
    if axis.ndim != 1:
        raise DatasetError(f"{name} must be one-dimensional, got shape {axis.shape}")
    if axis.size < 2:
        raise DatasetError(f"{name} needs at least 2 values, got {axis.size}")
    if not np.all(np.isfinite(axis)):
        raise DatasetError(f"{name} contains non-finite values")
    steps = np.diff(axis)
    if np.all(steps > 0):
        return axis, True
    if np.all(steps < 0):
        return axis, False
    raise DatasetError(f"{name} is not strictly monotonic")


class Dataset:
    """
    Immutable regular lat/lon grid of scalar values.

    Args:
        lat: 1D latitude axis in degrees, strictly monotonic
        lon: 1D longitude axis in degrees, strictly monotonic
        values: 2D array indexed [lat, lon]
        fill_value: Samples equal to this value are treated as missing (NaN)

    Raises:
        DatasetError: if any of the invariants above does not hold
    """

    def __init__(self, lat, lon, values, fill_value: Optional[float] = None):
        self._lat, self._lat_ascending = _as_axis(lat, "latitude")
        self._lon, self._lon_ascending = _as_axis(lon, "longitude")

        if self.lat_min < -90.0 or self.lat_max > 90.0:
            raise DatasetError(
                f"latitude must lie within [-90, 90], got [{self.lat_min}, {self.lat_max}]"
            )
        if self.lon_min < -180.0 or self.lon_max > 360.0 or self.lon_max - self.lon_min > 360.0:
            raise DatasetError(
                f"longitude must lie within [-180, 180] or [0, 360], got [{self.lon_min}, {self.lon_max}]"
            )
        if self.lon_min < 0.0 and self.lon_max > 180.0:
            raise DatasetError(
                f"longitude mixes the -180..180 and 0..360 conventions, got [{self.lon_min}, {self.lon_max}]"
            )

        try:
            data = np.array(values, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise DatasetError(f"values are not numeric: {e}") from e
        if data.shape != (self._lat.size, self._lon.size):
            raise DatasetError(
                f"values shape {data.shape} does not match (latitude, longitude) = "
                f"({self._lat.size}, {self._lon.size})"
            )
        if fill_value is not None:
            data[data == fill_value] = np.nan
        self._values = data

        for array in (self._lat, self._lon, self._values):
            array.setflags(write=False)

        # Detect whether the dataset uses 0..360 longitudes
        self.lon_0_360 = bool(self.lon_min >= 0.0 and self.lon_max > 180.0)

    @classmethod
    def from_file(
        cls,
        latitude: str,
        longitude: str,
        variable: str,
        path: Union[str, Path],
        fill_value: Optional[float] = None,
    ) -> "Dataset":
        """
        Load a dataset from a netCDF (or any xarray-readable) file.

        Args:
            latitude: Name of the latitude dimension/coordinate
            longitude: Name of the longitude dimension/coordinate
            variable: Name of the 2D variable to render
            path: Path to the file
            fill_value: Extra missing-value marker, on top of the file's _FillValue

        Raises:
            DatasetError: if the file cannot be read or the grid is invalid
        """
        logger.info(f"Loading '{variable}' from {path}")
        lat, lon, values = read_grid(path, latitude=latitude, longitude=longitude, variable=variable)
        dataset = cls(lat, lon, values, fill_value=fill_value)
        lon_min, lon_max, lat_min, lat_max = dataset.bounds
        logger.info(
            f"Grid {dataset.shape[0]} × {dataset.shape[1]}, "
            f"lat [{lat_min:.2f}, {lat_max:.2f}], lon [{lon_min:.2f}, {lon_max:.2f}]"
        )
        return dataset

    def __repr__(self):
        return f"Dataset(shape={self.shape}, bounds={self.bounds})"

    @property
    def lat(self) -> np.ndarray:
        return self._lat

    @property
    def lon(self) -> np.ndarray:
        return self._lon

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def shape(self) -> Tuple[int, int]:
        return self._values.shape

    @property
    def lat_ascending(self) -> bool:
        return self._lat_ascending

    @property
    def lon_ascending(self) -> bool:
        return self._lon_ascending

    @property
    def lat_min(self) -> float:
        return float(min(self._lat[0], self._lat[-1]))

    @property
    def lat_max(self) -> float:
        return float(max(self._lat[0], self._lat[-1]))

    @property
    def lon_min(self) -> float:
        return float(min(self._lon[0], self._lon[-1]))

    @property
    def lon_max(self) -> float:
        return float(max(self._lon[0], self._lon[-1]))

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(lon_min, lon_max, lat_min, lat_max) of the grid coordinates."""
        return self.lon_min, self.lon_max, self.lat_min, self.lat_max

    @property
    def resolution(self) -> Tuple[float, float]:
        """Mean (lat, lon) spacing in degrees."""
        return (
            (self.lat_max - self.lat_min) / (self._lat.size - 1),
            (self.lon_max - self.lon_min) / (self._lon.size - 1),
        )

    def value_range(self) -> Optional[Tuple[float, float]]:
        """(min, max) of the finite values, None if there are none."""
        finite = self._values[np.isfinite(self._values)]
        if finite.size == 0:
            return None
        return float(finite.min()), float(finite.max())

    def _wrap_lon(self, lon):
        """Map lon values to dataset convention (-180..180 or 0..360).

        Values already inside the grid's longitude range are left alone, so
        the east edge (180 or 360) does not fold onto the west edge.
        """
        lon = np.asarray(lon, dtype=np.float64)
        if self.lon_0_360:
            wrapped = np.mod(lon, 360.0)
        else:
            wrapped = (lon + 180.0) % 360.0 - 180.0
        return np.where((lon >= self.lon_min) & (lon <= self.lon_max), lon, wrapped)

    def intersects(self, lon_min: float, lon_max: float, lat_min: float, lat_max: float) -> bool:
        """Whether a lon/lat box (in -180..180 degrees) overlaps the grid coverage.

        A box that only shares an edge with the grid does not count.
        """
        if lat_max <= self.lat_min or lat_min >= self.lat_max:
            return False
        lo = float(self._wrap_lon(lon_min))
        hi = lo + (lon_max - lon_min)
        return any(
            lo + shift < self.lon_max and hi + shift > self.lon_min
            for shift in (-360.0, 0.0, 360.0)
        )

    def locate(self, lat: float, lon: float) -> Optional[Cell]:
        """Grid cell enclosing (lat, lon), None outside the coverage."""
        lon = float(self._wrap_lon(lon))
        i_lat = bracket(self._lat, lat)
        i_lon = bracket(self._lon, lon)
        if i_lat is None or i_lon is None:
            return None
        t_lat = (lat - self._lat[i_lat]) / (self._lat[i_lat + 1] - self._lat[i_lat])
        t_lon = (lon - self._lon[i_lon]) / (self._lon[i_lon + 1] - self._lon[i_lon])
        return Cell(i_lat, i_lon, float(t_lat), float(t_lon))

    def interpolate(self, cell: Cell) -> float:
        """Bilinear value inside a cell (NaN if a contributing sample is missing)."""
        return float(_bilinear(self._values, cell.i_lat, cell.i_lon, cell.t_lat, cell.t_lon))

    def sample(self, lat: float, lon: float) -> Optional[float]:
        """Bilinear value at (lat, lon); None outside the grid (no extrapolation)."""
        cell = self.locate(lat, lon)
        if cell is None:
            return None
        return self.interpolate(cell)

    def value_at(self, lat: float, lon: float) -> Optional[float]:
        """Value of the grid sample closest to (lat, lon); None outside the grid."""
        cell = self.locate(lat, lon)
        if cell is None:
            return None
        i_lat = cell.i_lat + int(cell.t_lat > 0.5)
        i_lon = cell.i_lon + int(cell.t_lon > 0.5)
        return float(self._values[i_lat, i_lon])

    def sample_grid(self, lat: np.ndarray, lon: np.ndarray, method: str = "bilinear") -> np.ndarray:
        """
        Sample the grid at many points at once.

        Args:
            lat: Latitudes in degrees
            lon: Longitudes in degrees, same shape as lat
            method: "bilinear" or "nearest"

        Returns:
            Float array shaped like lat, NaN outside the grid or where data is missing
        """
        if method not in RESAMPLING_METHODS:
            raise ValueError(f"Unknown resampling method '{method}', expected one of {RESAMPLING_METHODS}")

        lat = np.asarray(lat, dtype=np.float64)
        lon = self._wrap_lon(np.asarray(lon, dtype=np.float64))

        i_lat, in_lat = bracket_many(self._lat, lat)
        i_lon, in_lon = bracket_many(self._lon, lon)

        t_lat = (lat - self._lat[i_lat]) / (self._lat[i_lat + 1] - self._lat[i_lat])
        t_lon = (lon - self._lon[i_lon]) / (self._lon[i_lon + 1] - self._lon[i_lon])

        if method == "nearest":
            out = self._values[i_lat + (t_lat > 0.5), i_lon + (t_lon > 0.5)].astype(np.float64)
        else:
            out = _bilinear(self._values, i_lat, i_lon, t_lat, t_lon)

        return np.where(in_lat & in_lon, out, np.nan)


def read_grid(
    path: Union[str, Path],
    variable: str,
    latitude: str = "latitude",
    longitude: str = "longitude",
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Read the two coordinate axes and a 2D variable from a file.

    Singleton dimensions (e.g. a single time step) are squeezed away and the
    variable is transposed to (latitude, longitude). _FillValue and
    scale_factor/add_offset are decoded by xarray, so missing data comes
    back as NaN.

    Returns:
        (lat, lon, values) as numpy arrays

    Raises:
        DatasetError: if the file cannot be opened or lacks a named item
    """
    try:
        ds = xr.open_dataset(path, decode_cf=True, mask_and_scale=True)
    except (OSError, ValueError) as e:
        logger.error(f"Cannot open {path}: {e}")
        raise DatasetError(f"Cannot open {path}: {e}") from e

    with ds:
        for name in (latitude, longitude, variable):
            if name not in ds.variables and name not in ds.dims:
                raise DatasetError(f"No dimension or variable named '{name}' in {path}")

        da = ds[variable]
        extra = [d for d in da.dims if d not in (latitude, longitude)]
        singleton = [d for d in extra if da.sizes[d] == 1]
        if singleton:
            da = da.isel({d: 0 for d in singleton})
        if set(da.dims) != {latitude, longitude}:
            raise DatasetError(
                f"Variable '{variable}' must be 2D over ({latitude}, {longitude}), got dims {da.dims}"
            )
        da = da.transpose(latitude, longitude)

        lat = np.asarray(ds[latitude].values)
        lon = np.asarray(ds[longitude].values)
        values = np.asarray(da.values)

    return lat, lon, values
