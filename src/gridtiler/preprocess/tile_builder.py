"""Tile builder: renders a Dataset to a Web Mercator tile pyramid of PNG files.

Rendering runs in the calling thread; PNG encoding and writing are handed to
a thread pool so disk I/O overlaps with the next tile's sampling.
"""

import math
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from iconfig.iconfig import iConfig
from loguru import logger

from gridtiler.model.models import TileMeta
from gridtiler.model.tile import Tile, TileAddress
from gridtiler.render.mercator import tiles_for_bounds
from gridtiler.render.renderer import PixelBuffer, Renderer

MAX_ZOOM = 18


class TileBuilder:
    """Build the {layer}/{z}/{x}/{y}.png tree of one renderer."""

    def __init__(
        self,
        config: iConfig,
        renderer: Renderer,
        output_dir: Union[str, Path],
        layer: str = "",
        max_workers: int = 4,
    ):
        """
        Args:
            config: iConfig instance for configuration
            renderer: Renderer bound to the dataset, scale and colormap
            output_dir: Root output directory for tiles
            layer: Sub-directory name of this layer ("" writes directly into output_dir)
            max_workers: Number of parallel workers for PNG writing
        """
        self.config = config
        self.renderer = renderer
        self.output_dir = Path(output_dir)
        self.layer = layer
        self.max_workers = max_workers
        self.compress_level = self.config("tiler.compress_level", default=6)
        self.pending_tiles: Dict[Future, Tile] = {}

    @property
    def layer_dir(self) -> Path:
        return self.output_dir / self.layer if self.layer else self.output_dir

    def get_zoom_levels(self, calculate: bool = False) -> Tuple[int, int]:
        """
        Determine reasonable zoom levels for the dataset.

        Unless `calculate` is set, configured levels win. The computed max
        zoom is the first level where one tile pixel is no wider than a grid
        cell.

        Returns:
            (min_zoom, max_zoom)
        """
        min_zoom = 0

        if not calculate:
            # Min zoom covers the entire world
            min_zoom = self.config("tiler.min_zoom_levels", default=0)

            if (max_zoom := self.config("tiler.max_zoom_levels")) is not None:
                return min_zoom, max_zoom

        _, lon_resolution = self.renderer.dataset.resolution
        tile_size = self.renderer.tile_size
        max_zoom = math.ceil(math.log2(360.0 / (tile_size * lon_resolution)))
        max_zoom = min(max(max_zoom, min_zoom), MAX_ZOOM)

        return min_zoom, max_zoom

    def tiles_for_zoom(self, z: int) -> List[Tile]:
        """All tiles at zoom z that overlap the dataset."""
        tiles = [Tile(x=x, y=y, z=z) for x, y, z in tiles_for_bounds(*self.renderer.dataset.bounds, z)]
        return [tile for tile in tiles if self.renderer.intersects(tile)]

    def build(self, min_zoom: Optional[int] = None, max_zoom: Optional[int] = None) -> TileMeta:
        """Render and write all tiles from min_zoom to max_zoom (inclusive)."""
        config_min, config_max = self.get_zoom_levels()
        min_zoom = config_min if min_zoom is None else min_zoom
        max_zoom = config_max if max_zoom is None else max_zoom
        if min_zoom < 0 or max_zoom < min_zoom:
            raise ValueError(f"Invalid zoom range {min_zoom}..{max_zoom}")

        lon_min, lon_max, lat_min, lat_max = self.renderer.dataset.bounds
        logger.info(f"Building tiles for '{self.layer or self.output_dir.name}' (z{min_zoom}-{max_zoom})")
        logger.info(f"Data bounds: lat [{lat_min:.2f}, {lat_max:.2f}], lon [{lon_min:.2f}, {lon_max:.2f}]")

        tile_count = 0
        errors = []
        # Use thread pool for I/O
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            self.executor = executor

            for z in range(min_zoom, max_zoom + 1):
                tiles = self.tiles_for_zoom(z)
                if not tiles:
                    logger.warning(f"  No tiles overlap the dataset at zoom {z}")
                    continue
                logger.info(f"  Rendering zoom {z}: {len(tiles)} tiles")
                for tile in tiles:
                    self._queue_tile_save(self.renderer.render_tile(tile))
                    tile_count += 1

            # Wait for all pending I/O to complete
            errors = self._wait_for_pending_tiles()

        if errors:
            msg = "\n".join([f"- {tile}: {type(e).__name__}: {e}" for tile, e in errors[:20]])
            raise RuntimeError(f"build() failed to write {len(errors)} tile(s). First errors:\n{msg}")

        meta = TileMeta(
            layer=self.layer,
            min_zoom=min_zoom,
            max_zoom=max_zoom,
            tile_size=self.renderer.tile_size,
            bounds=self.renderer.dataset.bounds,
            colormap=self.renderer.colormap.name,
            scale=self.renderer.scale.model_dump(),
            tile_count=tile_count,
        )
        self.layer_dir.mkdir(parents=True, exist_ok=True)
        meta.save(self.layer_dir / "metadata.json")

        logger.info(f"Tile generation complete: {tile_count} tiles in {self.layer_dir}")
        return meta

    def _queue_tile_save(self, buffer: PixelBuffer) -> None:
        """Queue a tile for parallel saving."""
        future = self.executor.submit(self._save_tile, buffer)
        self.pending_tiles[future] = buffer.tile

    def _wait_for_pending_tiles(self) -> list:
        """Wait for all pending tile I/O operations to complete."""
        errors = []
        for future, tile in self.pending_tiles.items():
            try:
                future.result()
            except Exception as e:
                logger.error(f"Tile save failed for {tile}: {e}")
                errors.append((tile, e))
        self.pending_tiles.clear()
        return errors

    def _save_tile(self, buffer: PixelBuffer) -> Path:
        """Save tile as PNG with RGBA support for transparency."""
        address = TileAddress.for_tile(buffer.tile, layer=self.layer)
        tile_file = self.output_dir / address.path()
        tile_file.parent.mkdir(parents=True, exist_ok=True)
        buffer.save(tile_file, compress_level=self.compress_level)
        return tile_file


def build_tiles(
    config: iConfig,
    renderer: Renderer,
    output_dir: Union[str, Path],
    layer: str = "",
    min_zoom: Optional[int] = None,
    max_zoom: Optional[int] = None,
    max_workers: int = 4,
) -> TileMeta:
    """
    Build a Web Mercator tile pyramid for one renderer.

    Args:
        config: iConfig instance (zoom levels, PNG compression)
        renderer: Renderer to draw the tiles with
        output_dir: Root directory for tiles
        layer: Sub-directory of this layer
        min_zoom/max_zoom: Zoom range; taken from config or the grid resolution when None
        max_workers: Number of parallel workers for I/O operations

    Example:
        dataset = Dataset.from_file("latitude", "longitude", "wind_magnitude", "wind.nc")
        renderer = Renderer(dataset, LinearScale(min=0, max=20), get_colormap("RdYlBu_r"))

        build_tiles(
            config=iConfig(),
            renderer=renderer,
            output_dir=Path("tiles"),
            layer="wind_magnitude",
            max_zoom=5,
        )
    """
    builder = TileBuilder(
        config=config,
        renderer=renderer,
        output_dir=output_dir,
        layer=layer,
        max_workers=max_workers,
    )
    return builder.build(min_zoom=min_zoom, max_zoom=max_zoom)
