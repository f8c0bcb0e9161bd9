"""Maps a sensor's type tag and description onto a reporting category.

Rules are evaluated in order and the first match wins. For each category the
unit tag rule is checked before the keyword rule, and categories are visited
in the order temperature, humidity, water, energy, feed, weight.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from typing import FrozenSet, Optional, Sequence, Tuple, Union

from models.records import Category


def fold_text(text: str) -> str:
    """Lower-case and strip accents so ``Água`` compares equal to ``agua``."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


@dataclass(frozen=True)
class TypeTagRule:
    """Matches when the sensor's unit tag is one of ``tags`` (exact match)."""

    category: Category
    tags: FrozenSet[str]

    def matches(self, sensor_type: Optional[str], sensor_name: Optional[str]) -> bool:
        if sensor_type is None:
            return False
        return sensor_type.strip() in self.tags


@dataclass(frozen=True)
class KeywordRule:
    """Matches when the folded description contains any keyword."""

    category: Category
    keywords: Tuple[str, ...]

    def matches(self, sensor_type: Optional[str], sensor_name: Optional[str]) -> bool:
        if not sensor_name:
            return False
        folded = fold_text(sensor_name)
        return any(keyword in folded for keyword in self.keywords)


Rule = Union[TypeTagRule, KeywordRule]


DEFAULT_RULES: Tuple[Rule, ...] = (
    TypeTagRule(Category.temperature, frozenset({"Celsius"})),
    KeywordRule(Category.temperature, ("temperatura", "temp")),
    TypeTagRule(Category.humidity, frozenset({"Percentual"})),
    KeywordRule(Category.humidity, ("umidade", "humidity")),
    TypeTagRule(Category.water, frozenset({"Litros"})),
    KeywordRule(Category.water, ("agua", "water")),
    TypeTagRule(Category.energy, frozenset({"kW", "kw"})),
    KeywordRule(Category.energy, ("energia", "energy")),
    TypeTagRule(Category.feed, frozenset({"Kg", "kg"})),
    KeywordRule(Category.feed, ("racao", "feed", "alimento")),
    KeywordRule(Category.weight, ("peso", "weight", "balanca")),
)


class Classifier:
    """Ordered rule chain; deterministic for a given rule sequence."""

    def __init__(self, rules: Sequence[Rule] = DEFAULT_RULES) -> None:
        self.rules: Tuple[Rule, ...] = tuple(rules)

    def match(self, sensor_type: Optional[str], sensor_name: Optional[str]) -> Optional[Rule]:
        for rule in self.rules:
            if rule.matches(sensor_type, sensor_name):
                return rule
        return None

    def classify(self, sensor_type: Optional[str], sensor_name: Optional[str]) -> Optional[Category]:
        rule = self.match(sensor_type, sensor_name)
        return rule.category if rule is not None else None
