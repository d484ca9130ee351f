"""Plot-number parsing and reporting classification.

Plot numbers are opaque tokens such as ``A-56`` or ``吉相-10``. The part before
the trailing ``-<digits>`` is the section; sections are further mapped to a
display category and a plot type for the inventory reports.
"""

from __future__ import annotations

import re
from typing import Optional


_SECTION_SUFFIX = re.compile(r'(.+)-[0-9]+')

# Distinct section names collapsed into one reporting category.
SECTION_CATEGORIES: dict[str, str] = {
    '樹林': '樹林・天空',
    '天空': '樹林・天空',
    '天空K': '樹林・天空',
}

DEFAULT_PLOT_TYPE = '自由'

# Evaluated in order. Exact names come before the substring families so a
# compound name never falls through to the default.
_EXACT_TYPES: tuple[tuple[str, str], ...] = (
    ('吉相', '吉相'),
    ('樹林', '樹林'),
)
_FAMILY_TYPES: tuple[tuple[str, str], ...] = (
    ('天空', '天空'),
    ('るり庵', 'るり庵'),
)
_SPECIAL_ZONE_TYPES: dict[str, str] = {
    '墳墓': '墳墓',
    '憩': '特別区',
    '恵': '特別区',
}


def extract_section(plot_number: str) -> str:
    """Return the section prefix of a plot number.

    >>> extract_section('A-56')
    'A'
    >>> extract_section('るり庵テラス-1')
    'るり庵テラス'
    >>> extract_section('A')
    'A'
    """
    match = _SECTION_SUFFIX.fullmatch(plot_number or '')
    if match and match.group(1):
        return match.group(1)
    return plot_number


def categorize_section(section: str) -> Optional[str]:
    return SECTION_CATEGORIES.get(section)


def determine_plot_type(section: str, area_sqm: float | None = None) -> str:
    """Classify a section into a plot type for the area report.

    ``area_sqm`` is accepted so size-based types can be added without
    changing callers; no current rule depends on it.
    """
    for name, plot_type in _EXACT_TYPES:
        if section == name:
            return plot_type

    for fragment, plot_type in _FAMILY_TYPES:
        if fragment in section:
            return plot_type

    return _SPECIAL_ZONE_TYPES.get(section, DEFAULT_PLOT_TYPE)
