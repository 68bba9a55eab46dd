"""
Random number generation utilities.

Each pipeline stage derives its own Alea stream from the world seed and a
stage tag, so regenerating one layer never shifts the random sequence of
another. Python's random and NumPy's random are not used by the generator.
"""

from ..core.alea_prng import AleaPRNG


def derive_prng(seed, stage: str) -> AleaPRNG:
    """
    Create the PRNG for one pipeline stage.

    Args:
        seed: World seed (string or number)
        stage: Stage tag, e.g. "points" or "hydrology"

    Returns:
        AleaPRNG seeded with both parts
    """
    return AleaPRNG([seed, stage])


def seed_to_int(seed) -> int:
    """
    Map an arbitrary seed to a 31-bit integer for integer-seeded libraries.

    Args:
        seed: World seed (string or number)

    Returns:
        Deterministic non-negative integer
    """
    if isinstance(seed, int):
        return seed & 0x7FFFFFFF
    prng = AleaPRNG(seed)
    return int(prng.random() * 0x7FFFFFFF)
