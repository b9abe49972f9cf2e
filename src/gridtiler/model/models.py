from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

import orjson
from loguru import logger
from pydantic import BaseModel, Field, model_validator

from gridtiler.data.dataset import Dataset
from gridtiler.render.colormap import get_colormap
from gridtiler.render.renderer import Renderer
from gridtiler.render.scale import SCALE_KINDS, make_scale


class TileMeta(BaseModel):
    """Descriptor written next to a tile pyramid (metadata.json)."""
    version: str = Field(default="v1")
    layer: str
    min_zoom: int
    max_zoom: int
    tile_size: int
    bounds: Tuple[float, float, float, float]  # lon_min, lon_max, lat_min, lat_max
    colormap: str
    scale: Dict[str, Any]
    tile_count: int
    tiles: str = Field(default="{z}/{x}/{y}.png")

    def save(self, path: Union[str, Path]) -> None:
        with open(path, 'wb') as f:
            f.write(orjson.dumps(self.model_dump(), option=orjson.OPT_INDENT_2))

    @classmethod
    def load(cls, path: Union[str, Path]) -> "TileMeta":
        with open(path, 'rb') as f:
            return cls(**orjson.loads(f.read()))


class LayerConfig(BaseModel):
    """Configuration for a single layer to be tiled."""
    name: str
    variable: str
    latitude: str = "latitude"
    longitude: str = "longitude"
    colormap: str = "RdYlBu_r"
    scale: str = "linear"
    vmin: Optional[float] = None
    vmax: Optional[float] = None
    fill_value: Optional[float] = None
    # values that should be rendered transparent, e.g. [0.0] for a land mask
    transparent_values: Optional[List[float]] = None
    resampling: Literal["bilinear", "nearest"] = "bilinear"

    @model_validator(mode="after")
    def _check_scale(self):
        if self.scale not in SCALE_KINDS:
            raise ValueError(f"Unknown scale '{self.scale}', expected one of {SCALE_KINDS}")
        return self

    def load_dataset(self, path: Union[str, Path]) -> Dataset:
        return Dataset.from_file(
            latitude=self.latitude,
            longitude=self.longitude,
            variable=self.variable,
            path=path,
            fill_value=self.fill_value,
        )

    def resolve_range(self, dataset: Dataset) -> "LayerConfig":
        """Return a copy with missing vmin/vmax taken from the data range."""
        if self.vmin is not None and self.vmax is not None:
            return self

        data_range = dataset.value_range()
        if data_range is None:
            logger.warning(f"Layer {self.name} has no finite values, using range [0, 1]")
            data_range = (0.0, 1.0)
        vmin = self.vmin if self.vmin is not None else data_range[0]
        vmax = self.vmax if self.vmax is not None else data_range[1]
        if vmax <= vmin:
            # constant field: widen so the scale stays valid
            vmax = vmin + 1.0
        logger.info(f"  Value range for {self.name}: vmin={vmin:.4f}, vmax={vmax:.4f}")
        return self.model_copy(update={"vmin": vmin, "vmax": vmax})

    def make_renderer(self, dataset: Dataset, tile_size: int = 256) -> Renderer:
        layer = self.resolve_range(dataset)
        return Renderer(
            dataset,
            make_scale(layer.scale, layer.vmin, layer.vmax),
            get_colormap(layer.colormap),
            tile_size=tile_size,
            resampling=layer.resampling,
            transparent_values=layer.transparent_values,
        )
