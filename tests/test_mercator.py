import numpy as np
import pytest

from gridtiler.model.tile import Tile
from gridtiler.render.mercator import (
    MAX_LATITUDE,
    lon_lat_to_tile,
    mercator_valid,
    tile_lonlat_grid,
    tile_to_lonlat,
    tile_to_lonlat_bounds,
    tiles_for_bounds,
)


class TestTileToLonLat:
    """Tests for the inverse Web Mercator projection."""

    def test_zoom_zero_covers_mercator_world(self) -> None:
        """Tile 0/0/0 spans ±180° longitude and ±85.0511° latitude."""
        lon_min, lon_max, lat_min, lat_max = tile_to_lonlat_bounds(Tile(x=0, y=0, z=0))

        assert lon_min == pytest.approx(-180.0)
        assert lon_max == pytest.approx(180.0)
        assert lat_min == pytest.approx(-MAX_LATITUDE, abs=1e-9)
        assert lat_max == pytest.approx(MAX_LATITUDE, abs=1e-9)

    @pytest.mark.parametrize(
        "x, y, z, expected",
        [
            (2, 1, 2, (0.0, 66.51326044311186)),
            (486, 332, 10, (-9.140625, 53.33087298301705)),
        ],
    )
    def test_known_tile_corners(self, x, y, z, expected) -> None:
        """North-west corners of known tiles."""
        lon, lat = tile_to_lonlat(x, y, z)

        assert lon == pytest.approx(expected[0], abs=1e-9)
        assert lat == pytest.approx(expected[1], abs=1e-9)

    def test_scalar_input_gives_floats(self) -> None:
        lon, lat = tile_to_lonlat(1, 1, 1)

        assert isinstance(lon, float)
        assert isinstance(lat, float)
        assert lon == 0.0
        assert lat == 0.0

    def test_array_input_keeps_shape(self) -> None:
        x = np.array([[0.0, 0.5], [1.0, 1.5]])
        lon, lat = tile_to_lonlat(x, x, 1)

        assert lon.shape == (2, 2)
        assert lat.shape == (2, 2)

    def test_known_tile_bounds(self) -> None:
        """Bounds of tile 5/23/7."""
        lon_min, lon_max, lat_min, lat_max = tile_to_lonlat_bounds(Tile(x=23, y=7, z=5))

        assert lon_min == pytest.approx(78.75)
        assert lon_max == pytest.approx(90.0)
        assert lat_min == pytest.approx(66.51326044311186, abs=1e-9)
        assert lat_max == pytest.approx(70.61261423801925, abs=1e-9)


class TestTileLonLatGrid:
    """Tests for per-pixel projection of a tile."""

    def test_shape_and_orientation(self) -> None:
        """Row 0 is north, column 0 is west."""
        lon, lat = tile_lonlat_grid(Tile(x=0, y=0, z=0), 256)

        assert lon.shape == (256, 256)
        assert lat.shape == (256, 256)
        assert lon[0, 0] == pytest.approx(-180.0)
        assert lat[0, 0] == pytest.approx(MAX_LATITUDE)
        assert np.all(np.diff(lon[0, :]) > 0)
        assert np.all(np.diff(lat[:, 0]) < 0)

    def test_rows_share_latitude_and_columns_share_longitude(self) -> None:
        lon, lat = tile_lonlat_grid(Tile(x=3, y=2, z=3), 16)

        assert np.all(lat == lat[:, :1])
        assert np.all(lon == lon[:1, :])

    def test_equator_at_middle_row_of_world_tile(self) -> None:
        _, lat = tile_lonlat_grid(Tile(x=0, y=0, z=0), 256)

        assert lat[128, 0] == pytest.approx(0.0, abs=1e-12)

    def test_latitude_follows_mercator_stretch(self) -> None:
        """Middle row of 1/0/0 sits at 66.51°, not halfway between the tile edges."""
        _, lat = tile_lonlat_grid(Tile(x=0, y=0, z=1), 256)
        linear_midpoint = MAX_LATITUDE / 2

        assert lat[128, 0] == pytest.approx(66.51326044311186, abs=1e-9)
        assert abs(lat[128, 0] - linear_midpoint) > 20.0

    def test_custom_tile_size(self) -> None:
        lon, _ = tile_lonlat_grid(Tile(x=0, y=0, z=0), 4)

        np.testing.assert_allclose(lon[0], [-180.0, -90.0, 0.0, 90.0])


class TestLonLatToTile:
    """Tests for the forward tile lookup."""

    @pytest.mark.parametrize(
        "lon, lat, z, expected",
        [
            (10.0, 20.0, 5, (16, 14, 5)),
            (-10.0, 20.0, 5, (15, 14, 5)),
            (80.0, 70.0, 5, (23, 7, 5)),
            (80.0, 70.0, 1, (1, 0, 1)),
        ],
    )
    def test_known_points(self, lon, lat, z, expected) -> None:
        assert lon_lat_to_tile(lon, lat, z) == expected

    def test_edges_clamp_to_last_tile(self) -> None:
        """The antimeridian and the poles stay inside the tile grid."""
        assert lon_lat_to_tile(180.0, -90.0, 2) == (3, 3, 2)
        assert lon_lat_to_tile(-180.0, 90.0, 2) == (0, 0, 2)

    def test_round_trip_with_bounds(self) -> None:
        """The tile of a point contains that point."""
        x, y, z = lon_lat_to_tile(12.34, 45.67, 8)
        lon_min, lon_max, lat_min, lat_max = Tile(x=x, y=y, z=z).bounds()

        assert lon_min <= 12.34 < lon_max
        assert lat_min < 45.67 <= lat_max


class TestTilesForBounds:
    """Tests for the tile cover of a lon/lat box."""

    def test_world_tile(self) -> None:
        assert tiles_for_bounds(-10.0, 30.0, 10.0, 50.0, 0) == [(0, 0, 0)]

    def test_regional_box(self) -> None:
        assert tiles_for_bounds(-10.0, 30.0, 10.0, 50.0, 1) == [(0, 0, 1), (1, 0, 1)]
        assert tiles_for_bounds(-10.0, 30.0, 10.0, 50.0, 2) == [(1, 1, 2), (2, 1, 2)]

    def test_0_360_box_spanning_antimeridian_covers_full_width(self) -> None:
        tiles = tiles_for_bounds(0.0, 360.0, -10.0, 10.0, 1)

        assert sorted(tiles) == [(0, 0, 1), (0, 1, 1), (1, 0, 1), (1, 1, 1)]

    def test_0_360_box_east_of_antimeridian_is_folded(self) -> None:
        """Longitudes 190..200 are -170..-160 in tile space."""
        assert tiles_for_bounds(190.0, 200.0, 10.0, 20.0, 1) == [(0, 0, 1)]


class TestMercatorValid:
    def test_limits(self) -> None:
        lat = np.array([-90.0, -MAX_LATITUDE, 0.0, MAX_LATITUDE, 86.0])

        np.testing.assert_array_equal(mercator_valid(lat), [False, True, True, True, False])
