"""Tile renderer: dataset + scale + colormap -> RGBA pixel buffers."""

import io
from collections import deque
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple, Union

import numpy as np
from PIL import Image
from pydantic import BaseModel

from gridtiler.data.dataset import RESAMPLING_METHODS, Dataset
from gridtiler.model.tile import Tile
from gridtiler.render.colormap import ColorMap
from gridtiler.render.mercator import TILE_SIZE, mercator_valid, tile_lonlat_grid
from gridtiler.render.scale import SCALE_TYPES


class RendererError(ValueError):
    """Raised when a renderer is built from unusable parts."""


class RenderError(ValueError):
    """Raised when a single tile cannot be rendered (invalid address)."""


class PixelBuffer(BaseModel):
    """
    Rendered tile: uint8 RGBA pixels of shape (height, width, 4).

    Row 0 is the north edge, column 0 the west edge. Pixels without data
    carry the renderer's nodata colour (fully transparent by default).
    """
    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    tile: Tile
    pixels: np.ndarray

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def mode(self) -> str:
        return "RGBA"

    @property
    def is_empty(self) -> bool:
        """True when every pixel is fully transparent."""
        return not np.any(self.pixels[:, :, 3])

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels)

    def to_png(self, compress_level: int = 6) -> bytes:
        buffer = io.BytesIO()
        self.to_image().save(buffer, format="png", compress_level=compress_level)
        return buffer.getvalue()

    def save(self, path: Union[str, Path], compress_level: int = 6) -> None:
        """Write the tile as an RGBA PNG. I/O errors propagate unchanged."""
        self.to_image().save(path, "png", compress_level=compress_level)


class Renderer:
    """
    Render XYZ tiles of a Dataset.

    Every pixel is projected back to lon/lat, sampled from the grid,
    normalised by the scale and coloured by the colormap. Points outside the
    grid, missing samples and values listed in `transparent_values` get
    `nodata_color`. A renderer holds no mutable state and can be shared
    between threads.

    Args:
        dataset: Grid to render
        scale: One of the Scale variants
        colormap: Palette
        tile_size: Width/height of the produced tiles in pixels
        resampling: "bilinear" or "nearest"
        nodata_color: RGBA colour of pixels without data
        transparent_values: Data values rendered as nodata (e.g. [0.0] for land masks)

    Raises:
        RendererError: if any argument is unusable
    """

    def __init__(
        self,
        dataset: Dataset,
        scale,
        colormap: ColorMap,
        tile_size: int = TILE_SIZE,
        resampling: str = "bilinear",
        nodata_color: Tuple[int, int, int, int] = (0, 0, 0, 0),
        transparent_values: Optional[Iterable[float]] = None,
    ):
        if not isinstance(dataset, Dataset):
            raise RendererError(f"Expected a Dataset, got {type(dataset).__name__}")
        if not isinstance(scale, SCALE_TYPES):
            raise RendererError(f"Expected a Scale, got {type(scale).__name__}")
        if not isinstance(colormap, ColorMap):
            raise RendererError(f"Expected a ColorMap, got {type(colormap).__name__}")
        if not isinstance(tile_size, int) or tile_size <= 0:
            raise RendererError(f"tile_size must be a positive integer, got {tile_size!r}")
        if resampling not in RESAMPLING_METHODS:
            raise RendererError(f"Unknown resampling '{resampling}', expected one of {RESAMPLING_METHODS}")
        if len(nodata_color) != 4 or not all(0 <= int(c) <= 255 for c in nodata_color):
            raise RendererError(f"nodata_color must be 4 values in [0, 255], got {nodata_color!r}")

        self.dataset = dataset
        self.scale = scale
        self.colormap = colormap
        self.tile_size = tile_size
        self.resampling = resampling
        self.nodata_color = tuple(int(c) for c in nodata_color)
        self.transparent_values = tuple(float(v) for v in (transparent_values or ()))

    def __repr__(self):
        return (
            f"Renderer({self.dataset!r}, scale={self.scale.kind}, colormap={self.colormap.name}, "
            f"tile_size={self.tile_size}, resampling={self.resampling})"
        )

    @staticmethod
    def _check(tile: Tile) -> None:
        if not isinstance(tile, Tile):
            raise RenderError(f"Expected a Tile, got {type(tile).__name__}")
        if not tile.is_valid:
            raise RenderError(
                f"Invalid tile address {tile}: need z >= 0 and 0 <= x, y < 2^z"
            )

    def intersects(self, tile: Tile) -> bool:
        """Whether the tile overlaps the dataset coverage at all."""
        return self.dataset.intersects(*tile.bounds())

    def _blank(self, tile: Tile) -> PixelBuffer:
        pixels = np.empty((self.tile_size, self.tile_size, 4), dtype=np.uint8)
        pixels[:, :] = self.nodata_color
        return PixelBuffer(tile=tile, pixels=pixels)

    def render_tile(self, tile: Tile) -> PixelBuffer:
        """
        Render one tile.

        Raises:
            RenderError: if the tile address is out of range for its zoom
        """
        self._check(tile)
        if not self.intersects(tile):
            return self._blank(tile)

        # 1) lon/lat of every pixel (Web Mercator geometry)
        lon, lat = tile_lonlat_grid(tile, self.tile_size)

        # 2) sample the grid, NaN where undefined
        values = self.dataset.sample_grid(lat, lon, method=self.resampling)
        values[~mercator_valid(lat)] = np.nan
        if self.transparent_values:
            values[np.isin(values, self.transparent_values)] = np.nan

        # 3) value -> intensity -> colour
        pixels = self.colormap.colors(self.scale.normalize(values))
        pixels[np.isnan(values)] = self.nodata_color
        return PixelBuffer(tile=tile, pixels=pixels)

    def render_n_level_tile(self, tile: Tile, levels: int) -> Iterator[PixelBuffer]:
        """
        Render a tile and its descendants down to zoom `tile.z + levels`.

        Tiles outside the dataset coverage are skipped together with their
        descendants. Tiles come out zoom level by zoom level.
        """
        self._check(tile)
        max_zoom = tile.z + levels
        queue = deque([tile])
        while queue:
            current = queue.popleft()
            if not self.intersects(current):
                continue
            yield self.render_tile(current)
            if current.z < max_zoom:
                queue.extend(current.children())
