import numpy as np
import pytest

from gridtiler.render.colormap import (
    BRBG,
    GRAYSCALE,
    PRESETS,
    RDYLBU,
    ColorMap,
    get_colormap,
)


class TestPresets:
    """Tests for the built-in palettes."""

    def test_preset_names(self) -> None:
        assert set(PRESETS) == {"grayscale", "RdYlBu", "RdYlBu_r", "BrBG", "BrBG_r"}

    def test_grayscale_endpoints_and_middle(self) -> None:
        assert GRAYSCALE.color_at(0.0) == (0, 0, 0, 255)
        assert GRAYSCALE.color_at(1.0) == (255, 255, 255, 255)
        assert GRAYSCALE.color_at(0.5) == (128, 128, 128, 255)

    def test_rdylbu_endpoints(self) -> None:
        assert RDYLBU.color_at(0.0) == (165, 0, 38, 255)
        assert RDYLBU.color_at(1.0) == (49, 54, 149, 255)
        assert RDYLBU.color_at(0.5) == (255, 255, 191, 255)

    def test_reversed_presets(self) -> None:
        reversed_map = PRESETS["RdYlBu_r"]

        assert reversed_map.color_at(0.0) == RDYLBU.color_at(1.0)
        assert reversed_map.color_at(1.0) == RDYLBU.color_at(0.0)
        assert PRESETS["BrBG_r"].color_at(0.0) == BRBG.color_at(1.0)

    def test_reversed_twice_is_identity(self) -> None:
        twice = RDYLBU.reversed().reversed()

        assert twice.name == "RdYlBu"
        assert twice.anchors == RDYLBU.anchors


class TestColorLookup:
    """Tests for intensity -> colour lookups."""

    def test_interpolates_between_anchors(self) -> None:
        cmap = ColorMap.from_colors("black_red", ["#000000", "#ff0000"])

        assert cmap.color_at(0.25) == (64, 0, 0, 255)

    def test_colors_shape_and_dtype(self) -> None:
        result = GRAYSCALE.colors(np.zeros((3, 5)))

        assert result.shape == (3, 5, 4)
        assert result.dtype == np.uint8

    def test_nan_is_transparent(self) -> None:
        result = GRAYSCALE.colors(np.array([np.nan, 1.0]))

        np.testing.assert_array_equal(result[0], [0, 0, 0, 0])
        np.testing.assert_array_equal(result[1], [255, 255, 255, 255])

    @pytest.mark.parametrize("intensity", [-0.1, 1.1, float("nan")])
    def test_color_at_out_of_range(self, intensity) -> None:
        with pytest.raises(ValueError):
            GRAYSCALE.color_at(intensity)

    def test_colors_out_of_range(self) -> None:
        with pytest.raises(ValueError, match="Scale"):
            GRAYSCALE.colors(np.array([0.5, 1.5]))

    def test_anchors_with_alpha(self) -> None:
        cmap = ColorMap.from_colors("fade", [(0.0, 0.0, 1.0, 0.0), (0.0, 0.0, 1.0, 1.0)])

        assert cmap.color_at(0.0) == (0, 0, 255, 0)
        assert cmap.color_at(1.0) == (0, 0, 255, 255)


class TestColorMapConstruction:
    """Tests for building colormaps."""

    def test_needs_two_anchors(self) -> None:
        with pytest.raises(ValueError, match="at least 2"):
            ColorMap.from_colors("single", ["#ff0000"])

    def test_anchor_components_in_unit_range(self) -> None:
        with pytest.raises(ValueError):
            ColorMap(name="bad", anchors=((0.0, 0.0, 0.0, 1.0), (2.0, 0.0, 0.0, 1.0)))

    def test_from_matplotlib(self) -> None:
        viridis = ColorMap.from_matplotlib("viridis")

        assert len(viridis.anchors) == 64
        assert viridis.color_at(0.0) == (68, 1, 84, 255)

    def test_from_matplotlib_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown colormap"):
            ColorMap.from_matplotlib("not_a_colormap")

    def test_get_colormap_prefers_presets(self) -> None:
        assert get_colormap("RdYlBu") is RDYLBU

    def test_get_colormap_caches_matplotlib_maps(self) -> None:
        first = get_colormap("magma")

        assert first.name == "magma"
        assert get_colormap("magma") is first

    def test_get_colormap_unknown(self) -> None:
        with pytest.raises(ValueError):
            get_colormap("not_a_colormap")
