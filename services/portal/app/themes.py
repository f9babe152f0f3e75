from __future__ import annotations

import re
from dataclasses import asdict, dataclass


CUSTOM_THEME = "Custom"
_HEX = re.compile(r"^#[0-9a-fA-F]{6}$")


@dataclass(frozen=True)
class Theme:
    name: str
    from_color: str
    through_color: str
    to_color: str

    def as_dict(self) -> dict[str, str]:
        return asdict(self)


PREDEFINED_THEMES: list[Theme] = [
    Theme("Sunset Orange", "#f97316", "#ea580c", "#dc2626"),
    Theme("Ocean Blue", "#0ea5e9", "#0284c7", "#0369a1"),
    Theme("Royal Purple", "#8b5cf6", "#7c3aed", "#6d28d9"),
    Theme("Emerald Green", "#10b981", "#059669", "#047857"),
    Theme("Rose Pink", "#f43f5e", "#e11d48", "#be123c"),
    Theme("Indigo Night", "#6366f1", "#4f46e5", "#4338ca"),
    Theme("Teal Ocean", "#14b8a6", "#0d9488", "#0f766e"),
    Theme("Amber Sunset", "#f59e0b", "#d97706", "#b45309"),
    Theme("Slate Gray", "#64748b", "#475569", "#334155"),
    Theme("Lime Fresh", "#84cc16", "#65a30d", "#4d7c0f"),
    Theme("Cyan Sky", "#06b6d4", "#0891b2", "#0e7490"),
    Theme("Violet Dream", "#a855f7", "#9333ea", "#7c3aed"),
    Theme("Blue to Purple", "#3b82f6", "#8b5cf6", "#a855f7"),
    Theme("Ocean to Indigo", "#0ea5e9", "#6366f1", "#8b5cf6"),
    Theme("Sunset to Pink", "#f97316", "#ec4899", "#be185d"),
    Theme("Green to Blue", "#10b981", "#06b6d4", "#3b82f6"),
    Theme("Purple to Pink", "#8b5cf6", "#ec4899", "#f43f5e"),
    Theme("Blue to Teal", "#3b82f6", "#0ea5e9", "#14b8a6"),
    Theme("Orange to Red", "#f97316", "#ef4444", "#dc2626"),
    Theme("Indigo to Purple", "#6366f1", "#8b5cf6", "#a855f7"),
]

DEFAULT_THEME = PREDEFINED_THEMES[0]
_BY_NAME = {t.name: t for t in PREDEFINED_THEMES}


def resolve_theme(
    name: str | None,
    from_color: str | None = None,
    through_color: str | None = None,
    to_color: str | None = None,
) -> Theme:
    """
    Named presets ignore explicit colors; "Custom" needs all three as #rrggbb.
    """
    if not name:
        return DEFAULT_THEME
    if name in _BY_NAME:
        return _BY_NAME[name]
    if name != CUSTOM_THEME:
        raise ValueError(f"unknown theme: {name}")
    colors = [from_color, through_color, to_color]
    if not all(c and _HEX.match(c) for c in colors):
        raise ValueError("custom theme requires three #rrggbb colors")
    return Theme(CUSTOM_THEME, *(c.lower() for c in colors))  # type: ignore[union-attr]
