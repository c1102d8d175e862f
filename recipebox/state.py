from dataclasses import dataclass, field

from recipebox.models import InvalidArgument
from recipebox.scaling import DisplaySystem

SCALE_OPTIONS = (0.5, 1, 1.5, 2, 3)


@dataclass
class AppState:
    """Browse filters and display preferences shared by the views."""

    display_system: DisplaySystem = "metric"
    scale: float = 1
    selected_tags: list[str] = field(default_factory=list)

    def toggle_tag(self, tag: str) -> list[str]:
        if tag in self.selected_tags:
            self.selected_tags.remove(tag)
        else:
            self.selected_tags.append(tag)
        return self.selected_tags

    def clear_tags(self) -> None:
        self.selected_tags = []

    def set_scale(self, scale: float) -> None:
        if scale not in SCALE_OPTIONS:
            raise InvalidArgument(f"Scale must be one of {SCALE_OPTIONS}, got {scale!r}")
        self.scale = scale

    def toggle_units(self) -> DisplaySystem:
        self.display_system = "us" if self.display_system == "metric" else "metric"
        return self.display_system

    @classmethod
    def from_params(
        cls,
        units: str | None = None,
        scale: float | None = None,
        tags: list[str] | None = None,
        default_units: DisplaySystem = "metric",
    ) -> "AppState":
        """Build the state for one request; unknown values fall back to defaults."""
        state = cls(display_system=default_units, selected_tags=list(dict.fromkeys(tags or [])))
        if units in ("metric", "us"):
            state.display_system = units
        if scale in SCALE_OPTIONS:
            state.scale = scale
        return state
