"""
Seeded 2D noise field built on OpenSimplex.

The elevation synthesizer samples this field at normalized cell positions.
All styles return values in [-1, 1] and are deterministic for a seed.
"""

from enum import Enum

from opensimplex import OpenSimplex

from ..utils.random import seed_to_int

SECONDARY_SEED_OFFSET = 31337
TERTIARY_SEED_OFFSET = 77777


class NoiseStyle(str, Enum):
    """Noise algorithms available to the elevation synthesizer."""

    SIMPLEX = "simplex"
    FBM = "fbm"
    RIDGED = "ridged"
    WARPED = "warped"


class NoiseField:
    """Three independent OpenSimplex generators derived from one seed."""

    def __init__(self, seed, lacunarity: float = 2.0, persistence: float = 0.5,
                 warp_strength: float = 0.4):
        base = seed_to_int(seed)
        self.seed = seed
        self.lacunarity = lacunarity
        self.persistence = persistence
        self.warp_strength = warp_strength
        self._primary = OpenSimplex(base)
        self._secondary = OpenSimplex(base + SECONDARY_SEED_OFFSET)
        self._tertiary = OpenSimplex(base + TERTIARY_SEED_OFFSET)

        self._styles = {
            NoiseStyle.SIMPLEX: self.simplex,
            NoiseStyle.FBM: self.fbm,
            NoiseStyle.RIDGED: self.ridged,
            NoiseStyle.WARPED: self.warped,
        }

    def sample(self, x: float, y: float, style: NoiseStyle = NoiseStyle.FBM,
               frequency: float = 3.0, octaves: int = 6) -> float:
        """
        Sample the field at a normalized position.

        Args:
            x, y: Position, normally in [0, 1]
            style: Noise algorithm
            frequency: Base frequency
            octaves: Octave count for fractal styles

        Returns:
            Noise value in [-1, 1]
        """
        value = self._styles[NoiseStyle(style)](x, y, frequency, octaves)
        return max(-1.0, min(1.0, value))

    def simplex(self, x, y, frequency, octaves=1):
        return self._primary.noise2(x * frequency, y * frequency)

    def fbm(self, x, y, frequency, octaves, generator=None):
        """Fractal Brownian motion normalized by the total amplitude."""
        generator = generator or self._primary
        value = 0.0
        amp = 1.0
        freq = frequency
        max_value = 0.0
        for _ in range(max(1, octaves)):
            value += amp * generator.noise2(x * freq, y * freq)
            max_value += amp
            amp *= self.persistence
            freq *= self.lacunarity
        return value / max_value

    def ridged(self, x, y, frequency, octaves):
        """Ridged multifractal; sharp crests where the base noise crosses zero."""
        value = 0.0
        amp = 1.0
        total = 0.0
        freq = frequency
        prev = 1.0
        for _ in range(max(1, octaves)):
            n = 1.0 - abs(self._primary.noise2(x * freq, y * freq))
            n = n * n * prev
            prev = n
            value += n * amp
            total += amp
            amp *= self.persistence
            freq *= self.lacunarity
        return (value / total) * 2.0 - 1.0

    def warped(self, x, y, frequency, octaves):
        """fBm sampled through a domain displaced by two secondary fBm fields."""
        wx = x + self.fbm(x, y, frequency, 3, self._secondary) * self.warp_strength
        wy = y + self.fbm(x + 5.2, y + 1.3, frequency, 3, self._tertiary) * self.warp_strength
        return self.fbm(wx, wy, frequency, octaves)
