"""Mapping between source pixels and world-space coordinates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tilecut.options import YAxis


@dataclass(frozen=True)
class WorldMapping:
    """World-space placement of the source image's top-left pixel."""

    origin: tuple[float, float]
    units_per_pixel: float
    y_axis: YAxis = YAxis.DOWN

    def __post_init__(self) -> None:
        object.__setattr__(self, "origin", (float(self.origin[0]), float(self.origin[1])))
        object.__setattr__(self, "units_per_pixel", float(self.units_per_pixel))
        object.__setattr__(self, "y_axis", YAxis(self.y_axis))

    def world_for_pixel(self, pixel_x: int, pixel_y: int) -> tuple[float, float]:
        """World coordinate of the given source pixel."""
        world_x = self.origin[0] + pixel_x * self.units_per_pixel
        delta_y = pixel_y * self.units_per_pixel
        if self.y_axis is YAxis.DOWN:
            world_y = self.origin[1] + delta_y
        else:
            world_y = self.origin[1] - delta_y
        return (world_x, world_y)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "origin": [self.origin[0], self.origin[1]],
            "units_per_pixel": self.units_per_pixel,
            "y_axis": self.y_axis.value,
        }


def world_mapping_from_dict(data: dict[str, Any]) -> WorldMapping:
    """Build a mapping from its JSON representation."""
    origin = data["origin"]
    if len(origin) != 2:
        raise ValueError("world origin must hold two values")
    return WorldMapping(
        origin=(origin[0], origin[1]),
        units_per_pixel=data["units_per_pixel"],
        y_axis=YAxis(data["y_axis"]),
    )