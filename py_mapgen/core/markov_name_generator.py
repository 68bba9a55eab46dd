"""Syllable Markov chains for fantasy names.

Chains are trained on a culture's sample names and walked with the seeded
Alea PRNG, so the same seed always yields the same names.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from .alea_prng import AleaPRNG

VOWELS = set("aeiouy")
END = ""


@dataclass
class MarkovChain:
    """Syllable transition table; the empty string marks start and end."""

    data: Dict[str, List[str]]

    @classmethod
    def from_names(cls, names: List[str]) -> MarkovChain:
        chain: Dict[str, List[str]] = {}
        for name in names:
            syllables = split_syllables(name.lower())
            if not syllables:
                continue
            prev = END
            for syllable in syllables:
                chain.setdefault(prev, []).append(syllable)
                prev = syllable
            chain.setdefault(prev, []).append(END)
        return cls(data=chain)


def split_syllables(name: str) -> List[str]:
    """
    Split a word after each vowel group plus one trailing consonant.

    Trailing consonants are attached to the last syllable.
    """
    syllables = []
    current = ""
    i = 0
    while i < len(name):
        char = name[i]
        current += char
        if char in VOWELS and (i + 1 >= len(name) or name[i + 1] not in VOWELS):
            if i + 2 < len(name) and name[i + 1] not in VOWELS and name[i + 2] not in VOWELS:
                current += name[i + 1]
                i += 1
            syllables.append(current)
            current = ""
        i += 1

    if current:
        if syllables:
            syllables[-1] += current
        else:
            syllables.append(current)
    return syllables


class MarkovNameGenerator:
    """Walks a MarkovChain to produce capitalized names."""

    def __init__(self, prng: AleaPRNG):
        self.prng = prng

    def generate(self, chain: MarkovChain, min_length: int = 4, max_length: int = 10,
                 max_attempts: int = 20) -> str:
        """
        Generate a name from the chain.

        Args:
            chain: The Markov chain to use
            min_length: Minimum name length
            max_length: Maximum name length
            max_attempts: Walks tried before giving up

        Returns:
            Generated name, or an empty string if every attempt failed
        """
        for _ in range(max_attempts):
            name = self._walk(chain, max_length)
            if min_length <= len(name) <= max_length:
                return self._clean(name)
        return ""

    def _walk(self, chain: MarkovChain, max_length: int) -> str:
        result = ""
        current = END
        for _ in range(20):
            options = chain.data.get(current)
            if not options:
                break
            syllable = self.prng.choice(options)
            if syllable == END or len(result) + len(syllable) > max_length:
                break
            result += syllable
            current = syllable
        return result

    @staticmethod
    def _clean(name: str) -> str:
        # Collapse triple letters
        out = []
        for char in name:
            if len(out) >= 2 and out[-1] == char and out[-2] == char:
                continue
            out.append(char)
        return "".join(out).capitalize()
