"""
Name generation for kingdoms, cities, rivers and lakes.

Base names come from culture-specific prefix and suffix pools, or from a
syllable Markov chain trained on those pools. Category formatting (state
titles, river and lake forms) is applied on top.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from .alea_prng import AleaPRNG
from .markov_name_generator import MarkovChain, MarkovNameGenerator

ROMAN = ["II", "III", "IV", "V", "VI", "VII", "VIII", "IX", "X"]


class NameCategory(str, Enum):
    """Kinds of entities that receive names."""

    KINGDOM = "kingdom"
    CITY = "city"
    RIVER = "river"
    LAKE = "lake"
    BASE = "base"


class NameBase(BaseModel):
    """Naming pool for one culture."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(description="Culture name")
    weight: int = Field(default=1, description="Relative selection weight")
    prefixes: List[str] = Field(description="Capitalized leading parts")
    suffixes: List[str] = Field(description="Lowercase trailing parts")

    def sample_names(self) -> List[str]:
        """Every prefix joined with a handful of suffixes, for chain training."""
        step = max(1, len(self.suffixes) // 6)
        return [p + s for p in self.prefixes for s in self.suffixes[::step]]


DEFAULT_NAME_BASES = [
    NameBase(
        name="germanic", weight=25,
        prefixes=["Ald", "Ash", "Berg", "Black", "Bran", "Cold", "Dark", "Deep", "Dun", "Eld",
                  "Ever", "Fair", "Fell", "Frost", "Gold", "Grey", "Grim", "Hale", "High", "Holt",
                  "Iron", "Long", "Mist", "Moon", "North", "Red", "Rock", "Silver", "Stark",
                  "Stone", "Storm", "Thorn", "West", "White", "Wild", "Wind", "Winter", "Wolf"],
        suffixes=["ard", "bane", "berg", "born", "burg", "by", "dale", "dor", "fall", "feld",
                  "ford", "gard", "gate", "hall", "ham", "haven", "heim", "helm", "hold", "holm",
                  "keep", "land", "mark", "mere", "moor", "mund", "ness", "reach", "ridge",
                  "shire", "stead", "stone", "thorp", "ton", "vale", "ward", "wick", "wood"],
    ),
    NameBase(
        name="norse", weight=18,
        prefixes=["Arn", "Asg", "Bjorn", "Brag", "Eid", "Fjar", "Gald", "Grim", "Guld", "Gunn",
                  "Haf", "Heid", "Hel", "Hrafn", "Jarn", "Kald", "Kval", "Mjol", "Mork", "Nid",
                  "Nord", "Rag", "Sig", "Skald", "Skar", "Sval", "Svar", "Thor", "Ulf", "Val", "Yr"],
        suffixes=["borg", "by", "dal", "fell", "fjord", "foss", "gard", "grund", "hall", "heim",
                  "hof", "holm", "hus", "lund", "mark", "nes", "rik", "stad", "stein", "strom",
                  "tun", "vik", "voll"],
    ),
    NameBase(
        name="celtic", weight=20,
        prefixes=["Aber", "Ard", "Bal", "Ban", "Ben", "Blair", "Bren", "Caer", "Carn", "Conn",
                  "Craig", "Dal", "Drum", "Dun", "Fal", "Fin", "Glen", "Gwyn", "Inver", "Kel",
                  "Kil", "Kin", "Lach", "Lis", "Loch", "Mor", "Pen", "Rath", "Ros", "Strath",
                  "Tal", "Tir", "Tor", "Wyn"],
        suffixes=["ach", "aine", "an", "ard", "dale", "dor", "dun", "ell", "enn", "glas", "glen",
                  "ian", "in", "ine", "lin", "loch", "lyn", "mor", "more", "ness", "och", "owen",
                  "rath", "rick", "ros", "vale", "wen", "wyn"],
    ),
    NameBase(
        name="elvish", weight=8,
        prefixes=["Ael", "Aer", "Ald", "Cel", "Dir", "El", "End", "Fae", "Gal", "Gil", "Glor",
                  "Ith", "Lin", "Lir", "Lor", "Loth", "Mel", "Mir", "Nar", "Nil", "Quel", "Ril",
                  "Ser", "Sil", "Tal", "Thal", "Thir", "Val", "Vir", "Wen"],
        suffixes=["a", "ael", "al", "and", "ath", "dil", "dor", "duin", "el", "eth", "ia", "ien",
                  "ion", "ith", "las", "lin", "lond", "lor", "mir", "nor", "ond", "oth", "ril",
                  "rim", "rond", "thil", "wen"],
    ),
]

GOVERNMENT_TYPES = [
    ("Kingdom of", 28), ("Realm of", 15), ("Duchy of", 14), ("Empire of", 8),
    ("Republic of", 8), ("Grand Duchy of", 6), ("Principality of", 6),
    ("Dominion of", 5), ("Crown of", 5), ("County of", 5), ("March of", 4),
    ("Barony of", 3), ("Free City of", 3), ("Sultanate of", 3), ("Khanate of", 3),
]

SETTLEMENT_PREFIXES = ["Port", "Fort", "New", "Old", "High", "Low", "East", "West",
                       "North", "South", "Upper", "Lower", "Saint", "Castle", "Bridge"]
RIVER_ADJECTIVES = ["Swift", "Blue", "White", "Black", "Red", "Clear", "Dark", "Long",
                    "Great", "Old", "Cold", "Winding", "Rushing", "Gentle", "Wild", "Silver"]
RIVER_SUFFIXES = ["brook", "burn", "beck", "water", "run", "stream"]
LAKE_TYPES = ["Lake", "Loch", "Mere", "Pool", "Tarn"]
WATER_ADJECTIVES = ["Azure", "Emerald", "Golden", "Silver", "Crystal", "Stormy", "Frozen",
                    "Sunlit", "Moonlit", "Whispering", "Silent", "Tranquil"]


class NameGenerator:
    """Seeded generator of distinct names per category."""

    def __init__(self, seed=None, name_bases: Optional[List[NameBase]] = None):
        """Initialize name generator; the same seed replays the same names."""
        self.seed = seed if seed is not None else "default"
        self.name_bases = name_bases or DEFAULT_NAME_BASES
        self.chains: Dict[str, MarkovChain] = {}
        self.used_names: Set[str] = set()
        self._formatters = {
            NameCategory.KINGDOM: self.kingdom_name,
            NameCategory.CITY: self.city_name,
            NameCategory.RIVER: self.river_name,
            NameCategory.LAKE: self.lake_name,
            NameCategory.BASE: self.base_name,
        }
        self.reset()

    def reset(self) -> None:
        """Forget used names and rewind the random stream."""
        self.used_names.clear()
        self.prng = AleaPRNG([self.seed, "names"])
        self.markov = MarkovNameGenerator(self.prng)

    def _pick_weighted(self, items):
        total = sum(weight for _, weight in items)
        roll = self.prng.random() * total
        for item, weight in items:
            roll -= weight
            if roll <= 0:
                return item
        return items[-1][0]

    def _pick_culture(self) -> NameBase:
        return self._pick_weighted([(base, base.weight) for base in self.name_bases])

    def _chain(self, base: NameBase) -> MarkovChain:
        if base.name not in self.chains:
            self.chains[base.name] = MarkovChain.from_names(base.sample_names())
        return self.chains[base.name]

    def base_name(self, culture: Optional[NameBase] = None) -> str:
        culture = culture or self._pick_culture()
        if self.prng.random() < 0.4:
            name = self.markov.generate(self._chain(culture))
            if name:
                return name
        return self.prng.choice(culture.prefixes) + self.prng.choice(culture.suffixes)

    def kingdom_name(self) -> str:
        name = self.base_name()
        if self.prng.random() < 0.15:
            return name
        return f"{self._pick_weighted(GOVERNMENT_TYPES)} {name}"

    def city_name(self) -> str:
        name = self.base_name()
        if self.prng.random() < 0.2:
            return f"{self.prng.choice(SETTLEMENT_PREFIXES)} {name}"
        return name

    def river_name(self) -> str:
        culture = self._pick_culture()
        style = self.prng.random()
        if style < 0.4:
            return f"{self.prng.choice(culture.prefixes)} River"
        if style < 0.65:
            return (self.prng.choice(culture.prefixes) + self.prng.choice(RIVER_SUFFIXES)).capitalize()
        if style < 0.85:
            return f"{self.prng.choice(RIVER_ADJECTIVES)} River"
        return f"River {self.base_name(culture)}"

    def lake_name(self) -> str:
        style = self.prng.random()
        lake_type = self.prng.choice(LAKE_TYPES)
        if style < 0.5:
            return f"{lake_type} {self.base_name()}"
        if style < 0.75:
            return f"The {self.prng.choice(WATER_ADJECTIVES)} {lake_type}"
        return self.prng.choice(self._pick_culture().prefixes) + "mere"

    def generate_names(self, count: int, category="base") -> List[str]:
        """
        Generate distinct names.

        Args:
            count: Number of names wanted
            category: NameCategory or its string value

        Returns:
            Exactly ``count`` names never returned before since the last reset
        """
        formatter = self._formatters[NameCategory(category)]
        names = []
        attempts = 0
        while len(names) < count:
            attempts += 1
            name = formatter()
            if attempts > count * 10:
                # Pools exhausted; disambiguate with a regnal suffix
                name = f"{name} {ROMAN[attempts % len(ROMAN)]}"
            key = name.lower()
            if key in self.used_names:
                continue
            self.used_names.add(key)
            names.append(name)
        return names
