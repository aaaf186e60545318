"""Map options: layout algorithm, canvas size, spacing and filters.

Options are read-only once built.  Stored maps keep the ``MapFilter``
part as JSON in ``network_maps.filter`` and the rest in
``network_maps.options``.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from netmap.config import settings


class LayoutAlgorithm(str, Enum):
    CIRCULAR = "circular"
    FLAT = "flat"
    RADIAL = "radial"
    SPRING1 = "spring1"
    SPRING2 = "spring2"

    @property
    def program(self) -> str:
        """Graphviz program that implements this layout."""
        return _LAYOUT_PROGRAMS[self]


_LAYOUT_PROGRAMS = {
    LayoutAlgorithm.CIRCULAR: "circo",
    LayoutAlgorithm.FLAT: "dot",
    LayoutAlgorithm.RADIAL: "twopi",
    LayoutAlgorithm.SPRING1: "neato",
    LayoutAlgorithm.SPRING2: "fdp",
}


class MapFilter(BaseModel):
    node_radius: float = 40
    x_offs: float = 0
    y_offs: float = 0
    z_dash: float = 0.5
    node_sep: float = 5
    rank_sep: float = 5
    mindist: float = 1
    kval: float = 0.1
    dont_show_subgroups: bool = False
    empty_map: bool = False
    holding_area: tuple[int, int] = (0, 0)

    model_config = {"frozen": True, "extra": "ignore"}


def _max_width() -> int:
    return settings.NETWORKMAP_MAX_WIDTH


class MapOptions(BaseModel):
    generation_method: LayoutAlgorithm = LayoutAlgorithm.SPRING1
    width: int = Field(default_factory=_max_width, ge=1)
    height: int = Field(default_factory=_max_width, ge=1)
    max_width: int = Field(default_factory=_max_width, ge=1)
    zoom: float = Field(default=0, ge=0)
    font_size: int = 12
    nooverlap: bool = True
    size_canvas: tuple[int, int] | None = None
    cut_names: bool = False
    no_root_node: bool = False
    text_filter: str = ""
    map_filter: MapFilter = Field(default_factory=MapFilter)

    model_config = {"frozen": True, "extra": "ignore"}

    @property
    def layout(self) -> LayoutAlgorithm:
        return self.generation_method

    @property
    def include_root(self) -> bool:
        return not self.no_root_node

    def with_holding_area(self, origin: tuple[int, int]) -> "MapOptions":
        return self.model_copy(
            update={"map_filter": self.map_filter.model_copy(update={"holding_area": origin})}
        )

    @classmethod
    def from_stored(
        cls,
        generation_method: str | None,
        filter_data: dict[str, Any] | None,
        options_data: dict[str, Any] | None,
    ) -> "MapOptions":
        """Rebuild options from a stored map definition."""
        data: dict[str, Any] = dict(options_data or {})
        data["map_filter"] = MapFilter(**(filter_data or {}))
        if generation_method:
            data["generation_method"] = generation_method
        return cls(**data)

    def stored_options(self) -> dict[str, Any]:
        """Options to persist next to the filter (everything but map_filter)."""
        return self.model_dump(mode="json", exclude={"map_filter", "generation_method"})
