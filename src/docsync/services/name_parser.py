from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping

SEPARATOR = " - "
# a comma between two digits is a decimal comma inside the size ("45,5")
_FIELD_COMMA = re.compile(r"(?<!\d),|,(?!\d)")


@dataclass(frozen=True)
class ParsedName:
    brand: str = ""
    model: str = ""
    color: str = ""
    size: str = ""


def uses_comma_format(remainder: str) -> bool:
    """
    Product names come in two historical conventions:
      newer: "model - color, size"
      older: "model - size - color"
    A field comma is the only thing that tells them apart. Decimal commas
    in a size ("45,5") do not count.
    """
    return _FIELD_COMMA.search(remainder) is not None


def _split_comma_format(remainder: str) -> tuple[str, str, str]:
    match = _FIELD_COMMA.search(remainder)
    head, size = remainder[: match.start()], remainder[match.end():]
    model, sep, color = head.rpartition(SEPARATOR)
    if not sep:
        model, color = head, ""
    return model.strip(), color.strip(), size.strip()


def _split_dash_format(remainder: str) -> tuple[str, str, str]:
    parts = [p.strip() for p in remainder.split(SEPARATOR)]
    if len(parts) >= 3:
        return SEPARATOR.join(parts[:-2]), parts[-1], parts[-2]
    if len(parts) == 2:
        return parts[0], "", parts[1]
    return parts[0], "", ""


class ProductNameParser:
    def __init__(self, brands: Mapping[str, str]):
        # longest names first so "Nike SB" wins over "Nike"
        self._brands = sorted(
            ((name.strip(), (display or "").strip()) for name, display in brands.items() if name and name.strip()),
            key=lambda item: len(item[0]),
            reverse=True,
        )

    def match_brand(self, name: str) -> tuple[str, str]:
        """Return (brand display name, remainder). Brand is "" when nothing matches."""
        lowered = name.lower()
        for brand, display in self._brands:
            if not lowered.startswith(brand.lower()):
                continue
            rest = name[len(brand):]
            if rest and not (rest[0].isspace() or rest[0] in "-,"):
                continue
            return display or brand, rest.strip().lstrip("-").strip()
        return "", name.strip()

    def parse(self, name: str | None) -> ParsedName:
        name = (name or "").strip()
        if not name:
            return ParsedName()

        brand, remainder = self.match_brand(name)
        if uses_comma_format(remainder):
            model, color, size = _split_comma_format(remainder)
        else:
            model, color, size = _split_dash_format(remainder)
        return ParsedName(brand=brand, model=model, color=color, size=size)
