"""Process-wide collection of discovered kits."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Protocol

from .errors import NoKitSelected
from .kits import Kit


class KitSource(Protocol):
    def locate(self) -> List[Kit]:
        ...


class KitRegistry:
    """Ordered kits plus an optional default name.

    Scanning replaces the whole kit set; nothing is merged. Concurrent scans
    are not supported and callers must serialise them.
    """

    def __init__(self, kits: Iterable[Kit] | None = None, *, default: str | None = None) -> None:
        self._kits: Dict[str, Kit] = {}
        self._default: str | None = default
        if kits:
            self.replace(kits)

    def scan(self, source: KitSource) -> List[Kit]:
        kits = source.locate()
        self.replace(kits)
        return kits

    def replace(self, kits: Iterable[Kit]) -> None:
        replacement: Dict[str, Kit] = {}
        for kit in kits:
            if kit.name in replacement:
                raise ValueError(f"Duplicate kit name '{kit.name}'")
            replacement[kit.name] = kit
        self._kits = replacement

    def load_mapping(self, mapping: Mapping[str, Any], *, host: str | None = None) -> None:
        """Replace the kit set with hand-authored ``[kits.<name>]`` tables."""
        kits: List[Kit] = []
        for raw_name, raw_value in mapping.items():
            name = str(raw_name).strip()
            if not name:
                raise ValueError("Kit names cannot be empty")
            kits.append(Kit.from_mapping(name, raw_value, host=host))
        self.replace(kits)

    @property
    def default_name(self) -> str | None:
        return self._default

    def set_default(self, name: str | None) -> None:
        self._default = name

    def get(self, name: str) -> Kit | None:
        return self._kits.get(name)

    def kits(self) -> List[Kit]:
        return list(self._kits.values())

    def names(self) -> List[str]:
        return list(self._kits.keys())

    def __len__(self) -> int:
        return len(self._kits)

    def __contains__(self, name: object) -> bool:
        return name in self._kits

    def select(self, name: str | None = None) -> Kit:
        if not self._kits:
            raise NoKitSelected("No kits available; run a scan or define kits in the configuration")
        wanted = name or self._default
        if wanted is None:
            return next(iter(self._kits.values()))
        kit = self._kits.get(wanted)
        if kit is None:
            available = ", ".join(self._kits) or "<none>"
            raise NoKitSelected(f"Unknown kit '{wanted}'. Available kits: {available}")
        return kit

    def attribute(self, field: str, kit: Kit | str | None = None, default: Any = None) -> Any:
        """Return ``field`` of ``kit`` (the selected kit by default).

        A field the kit does not carry, an absent value and a value equal to
        ``default`` all look the same.
        """
        if field not in Kit.FIELDS and field != "name":
            return default
        resolved = kit if isinstance(kit, Kit) else self.select(kit)
        value = getattr(resolved, field, None)
        if value is None or value == ():
            return default
        return value


REGISTRY = KitRegistry()
"""Registry shared by the CLI for the lifetime of the process."""


__all__ = ["KitRegistry", "KitSource", "REGISTRY"]
