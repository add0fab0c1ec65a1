"""Graph of compiled PIL objects keyed by their location."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, order=True)
class Location:
    path: tuple = ()

    def join(self, limb: str) -> "Location":
        """Return a new location with `limb` appended."""
        return Location(self.path + (str(limb),))

    def __str__(self) -> str:
        return "_".join(self.path)


@dataclass
class PilObject:
    degree: int
    pil: list = field(default_factory=list)

    def __str__(self) -> str:
        body = "".join(f"{s}\n" for s in self.pil)
        return f"// Degree {self.degree}\n{body}"


@dataclass
class PILGraph:
    objects: dict = field(default_factory=dict)

    def __str__(self) -> str:
        return "".join(
            f"// Object {location}\n{obj}\n\n"
            for location, obj in sorted(self.objects.items())
        )