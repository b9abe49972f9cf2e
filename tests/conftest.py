"""Shared pytest fixtures for gridtiler tests."""

from pathlib import Path
from unittest.mock import MagicMock

import numpy as np
import pytest
import xarray as xr

from gridtiler.data.dataset import Dataset
from gridtiler.render.colormap import GRAYSCALE, get_colormap
from gridtiler.render.renderer import Renderer
from gridtiler.render.scale import LinearScale


@pytest.fixture
def regional_grid():
    """1° grid over lat [10, 50], lon [-10, 30] with value = lat + lon."""
    lat = np.linspace(10.0, 50.0, 41)
    lon = np.linspace(-10.0, 30.0, 41)
    lon_grid, lat_grid = np.meshgrid(lon, lat)
    return {
        "lat": lat,
        "lon": lon,
        "data": lat_grid + lon_grid,
    }


@pytest.fixture
def regional_dataset(regional_grid) -> Dataset:
    return Dataset(regional_grid["lat"], regional_grid["lon"], regional_grid["data"])


@pytest.fixture
def regional_renderer(regional_dataset: Dataset) -> Renderer:
    return Renderer(regional_dataset, LinearScale(min=0.0, max=80.0), get_colormap("RdYlBu_r"))


@pytest.fixture
def global_dataset() -> Dataset:
    """1° global grid with descending latitude, value = latitude."""
    lat = np.linspace(90.0, -90.0, 181)
    lon = np.linspace(-180.0, 180.0, 361)
    data = np.repeat(lat[:, None], lon.size, axis=1)
    return Dataset(lat, lon, data)


@pytest.fixture
def global_renderer(global_dataset: Dataset) -> Renderer:
    return Renderer(global_dataset, LinearScale(min=-90.0, max=90.0), GRAYSCALE)


@pytest.fixture
def netcdf_file(tmp_path: Path, regional_grid) -> Path:
    """netCDF file holding the regional grid as 'wind' with a singleton time dimension."""
    da = xr.DataArray(
        regional_grid["data"][None, :, :].astype(np.float32),
        dims=["time", "latitude", "longitude"],
        coords={
            "time": [0],
            "latitude": regional_grid["lat"],
            "longitude": regional_grid["lon"],
        },
    )
    path = tmp_path / "wind.nc"
    xr.Dataset({"wind": da}).to_netcdf(path)
    return path


@pytest.fixture
def test_config():
    """Config mock returning defaults, with a shallow max zoom."""
    config = MagicMock()

    def config_call(key, default=None):
        # Reduce zoom levels for faster tile generation in tests
        if key == "tiler.max_zoom_levels":
            return 2
        return default

    config.side_effect = config_call
    return config
