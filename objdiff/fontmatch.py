"""Pick the closest font in a family, following CSS Fonts Level 3 § 5.2."""

from __future__ import annotations

import enum
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Optional

NORMAL_STRETCH = 1.0
NORMAL_WEIGHT = 400.0


class FontStyle(enum.Enum):
    NORMAL = "normal"
    ITALIC = "italic"
    OBLIQUE = "oblique"


@dataclass(frozen=True)
class FontProperties:
    style: FontStyle = FontStyle.NORMAL
    weight: float = NORMAL_WEIGHT
    stretch: float = NORMAL_STRETCH


class FontNotFoundError(LookupError):
    """No candidate font matches the query."""


_STYLE_PREFERENCE = {
    FontStyle.ITALIC: (FontStyle.ITALIC, FontStyle.OBLIQUE, FontStyle.NORMAL),
    FontStyle.OBLIQUE: (FontStyle.OBLIQUE, FontStyle.ITALIC, FontStyle.NORMAL),
    FontStyle.NORMAL: (FontStyle.NORMAL, FontStyle.OBLIQUE, FontStyle.ITALIC),
}


def _closest(indices: Sequence[int], distance: Callable[[int], float]) -> Optional[int]:
    return min(indices, key=distance, default=None)


def _preferring(
    matching: list[int],
    value: Callable[[int], float],
    target: float,
    lower_first: bool,
    inclusive: bool,
) -> float:
    """Closest value, searching one side of ``target`` first and then the other."""
    if lower_first:
        side = [i for i in matching if value(i) <= target] if inclusive else \
            [i for i in matching if value(i) < target]
        best = _closest(side, lambda i: target - value(i))
        if best is None:
            best = _closest(matching, lambda i: value(i) - target)
    else:
        side = [i for i in matching if value(i) >= target] if inclusive else \
            [i for i in matching if value(i) > target]
        best = _closest(side, lambda i: value(i) - target)
        if best is None:
            best = _closest(matching, lambda i: target - value(i))
    return value(best)


def find_best_match(
    candidates: Sequence[FontProperties], query: Optional[FontProperties] = None
) -> int:
    """Return the index of the candidate that best matches ``query``."""
    if query is None:
        query = FontProperties()
    matching = list(range(len(candidates)))
    if not matching:
        raise FontNotFoundError("no candidate fonts")

    def stretch(i: int) -> float:
        return candidates[i].stretch

    if any(stretch(i) == query.stretch for i in matching):
        matching_stretch = query.stretch
    else:
        matching_stretch = _preferring(
            matching, stretch, query.stretch, query.stretch <= NORMAL_STRETCH, inclusive=False
        )
    matching = [i for i in matching if stretch(i) == matching_stretch]

    matching_style = next(
        style
        for style in _STYLE_PREFERENCE[query.style]
        if any(candidates[i].style is style for i in matching)
    ) if any(candidates[i].style in _STYLE_PREFERENCE[query.style] for i in matching) else None
    if matching_style is None:
        raise FontNotFoundError("no candidate with a usable style")
    matching = [i for i in matching if candidates[i].style is matching_style]

    def weight(i: int) -> float:
        return candidates[i].weight

    weights = {weight(i) for i in matching}
    # Between 400 and 500 exclusive the spec is silent; 450 is used as the cutoff.
    if query.weight in weights:
        matching_weight = query.weight
    elif 400.0 <= query.weight < 450.0 and 500.0 in weights:
        matching_weight = 500.0
    elif 450.0 <= query.weight <= 500.0 and 400.0 in weights:
        matching_weight = 400.0
    else:
        matching_weight = _preferring(
            matching, weight, query.weight, query.weight <= 500.0, inclusive=True
        )
    matching = [i for i in matching if weight(i) == matching_weight]

    if not matching:
        raise FontNotFoundError("no candidate matches the query")
    return matching[0]