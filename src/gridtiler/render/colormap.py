"""Named palettes mapping an intensity in [0, 1] to an RGBA colour."""

from typing import Dict, Iterable, Tuple

import matplotlib as mpl
import numpy as np
from matplotlib.colors import to_rgba
from pydantic import BaseModel, field_validator

# ColorBrewer anchors, as shipped with matplotlib
RDYLBU_COLORS = (
    "#a50026", "#d73027", "#f46d43", "#fdae61", "#fee090", "#ffffbf",
    "#e0f3f8", "#abd9e9", "#74add1", "#4575b4", "#313695",
)
BRBG_COLORS = (
    "#543005", "#8c510a", "#bf812d", "#dfc27d", "#f6e8c3", "#f5f5f5",
    "#c7eae5", "#80cdc1", "#35978f", "#01665e", "#003c30",
)

RGBA = Tuple[float, float, float, float]


class ColorMap(BaseModel):
    """
    Palette of anchor colours evenly spread over intensity 0..1.

    Intensities between two anchors get the linear blend of both.
    """
    model_config = {"frozen": True}

    name: str
    anchors: Tuple[RGBA, ...]

    @field_validator("anchors")
    @classmethod
    def _check_anchors(cls, anchors):
        if len(anchors) < 2:
            raise ValueError("A colormap needs at least 2 anchor colours")
        for anchor in anchors:
            if not all(0.0 <= c <= 1.0 for c in anchor):
                raise ValueError(f"Anchor components must lie in [0, 1], got {anchor}")
        return anchors

    @classmethod
    def from_colors(cls, name: str, colors: Iterable) -> "ColorMap":
        """Build a palette from matplotlib colour specs ("#ff0000", "navy", (1, 0, 0), ...)."""
        return cls(name=name, anchors=tuple(to_rgba(c) for c in colors))

    @classmethod
    def from_matplotlib(cls, name: str, n_anchors: int = 64) -> "ColorMap":
        """Sample a registered matplotlib colormap (e.g. "viridis", "coolwarm_r")."""
        try:
            cmap = mpl.colormaps[name]
        except KeyError as e:
            raise ValueError(f"Unknown colormap '{name}'") from e
        samples = cmap(np.linspace(0.0, 1.0, n_anchors))
        return cls(name=name, anchors=tuple(tuple(float(c) for c in row) for row in samples))

    def reversed(self) -> "ColorMap":
        name = self.name[:-2] if self.name.endswith("_r") else f"{self.name}_r"
        return ColorMap(name=name, anchors=self.anchors[::-1])

    def colors(self, intensities) -> np.ndarray:
        """
        Apply the palette to an array of intensities.

        Args:
            intensities: Values in [0, 1]; NaN marks missing data

        Returns:
            uint8 array of shape intensities.shape + (4,); NaN maps to (0, 0, 0, 0)

        Raises:
            ValueError: if a non-NaN intensity lies outside [0, 1]
        """
        data = np.asarray(intensities, dtype=np.float64)
        nan_mask = np.isnan(data)
        valid = data[~nan_mask]
        if np.any((valid < 0.0) | (valid > 1.0)):
            raise ValueError("Intensities must lie in [0, 1]; clamp them with a Scale first")

        table = np.asarray(self.anchors, dtype=np.float64)
        positions = np.linspace(0.0, 1.0, len(table))
        filled = np.where(nan_mask, 0.0, data)
        rgba = np.stack([np.interp(filled, positions, table[:, c]) for c in range(4)], axis=-1)
        rgba = np.rint(rgba * 255.0).astype(np.uint8)
        rgba[nan_mask] = 0
        return rgba

    def color_at(self, intensity: float) -> Tuple[int, int, int, int]:
        """RGBA colour (0-255) of a single intensity in the closed interval [0, 1]."""
        if not 0.0 <= intensity <= 1.0:
            raise ValueError(f"Intensity must lie in [0, 1], got {intensity}")
        return tuple(int(c) for c in self.colors(np.array([intensity]))[0])


GRAYSCALE = ColorMap.from_colors("grayscale", ["#000000", "#ffffff"])
RDYLBU = ColorMap.from_colors("RdYlBu", RDYLBU_COLORS)
BRBG = ColorMap.from_colors("BrBG", BRBG_COLORS)

PRESETS: Dict[str, ColorMap] = {
    cmap.name: cmap
    for cmap in (GRAYSCALE, RDYLBU, RDYLBU.reversed(), BRBG, BRBG.reversed())
}

_colormap_cache: Dict[str, ColorMap] = {}


def get_colormap(name: str) -> ColorMap:
    """
    Get a colormap by name: a preset first, else a sampled matplotlib colormap.

    Raises:
        ValueError: if matplotlib does not know the name either
    """
    if name in PRESETS:
        return PRESETS[name]
    if name not in _colormap_cache:
        _colormap_cache[name] = ColorMap.from_matplotlib(name)
    return _colormap_cache[name]
