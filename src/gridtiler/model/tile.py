from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from gridtiler.render.mercator import tile_to_lonlat_bounds


class Tile(BaseModel):
    """
    XYZ (slippy map) tile address.

    Zoom z splits the world into 2^z x 2^z tiles, x grows eastward and y
    grows southward. Out-of-range addresses can be built; `is_valid` tells
    them apart and the renderer rejects them.
    """
    model_config = {"frozen": True}

    x: int
    y: int
    z: int

    def __str__(self):
        return f"Tile(z={self.z}, x={self.x}, y={self.y})"

    @property
    def is_valid(self) -> bool:
        if self.z < 0:
            return False
        n = 2 ** self.z
        return 0 <= self.x < n and 0 <= self.y < n

    def bounds(self) -> Tuple[float, float, float, float]:
        """(lon_min, lon_max, lat_min, lat_max) in degrees."""
        return tile_to_lonlat_bounds(self)

    def children(self) -> List["Tile"]:
        """The four tiles covering this one at the next zoom level."""
        x, y, z = 2 * self.x, 2 * self.y, self.z + 1
        return [
            Tile(x=x, y=y, z=z),
            Tile(x=x + 1, y=y, z=z),
            Tile(x=x, y=y + 1, z=z),
            Tile(x=x + 1, y=y + 1, z=z),
        ]

    def parent(self) -> Optional["Tile"]:
        if self.z == 0:
            return None
        return Tile(x=self.x // 2, y=self.y // 2, z=self.z - 1)


class TileAddress(BaseModel):
    """
    Canonical tile address -> relative file path.

    Layout:
      {layer}/{z}/{x}/{y}.{ext}
    or, without a layer:
      {z}/{x}/{y}.{ext}

    Examples:
      wind_magnitude/5/16/14.png
      0/0/0.png
    """
    layer: str = Field(default="")
    z: int
    x: int
    y: int
    ext: str = Field(default="png")

    @classmethod
    def for_tile(cls, tile: Tile, layer: str = "", ext: str = "png") -> "TileAddress":
        return cls(layer=layer, z=tile.z, x=tile.x, y=tile.y, ext=ext)

    def path(self) -> str:
        """Generate path: {layer}/{z}/{x}/{y}.{ext}"""
        name = f"{self.z}/{self.x}/{self.y}.{self.ext}"
        return f"{self.layer}/{name}" if self.layer else name

    def tile(self) -> Tile:
        return Tile(x=self.x, y=self.y, z=self.z)
