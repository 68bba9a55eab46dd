"""Tests for the PRNG, Markov chains and the name generator."""

import pytest

from py_mapgen.core.alea_prng import AleaPRNG
from py_mapgen.core.markov_name_generator import MarkovChain, MarkovNameGenerator, split_syllables
from py_mapgen.core.name_generator import DEFAULT_NAME_BASES, NameCategory, NameGenerator
from py_mapgen.utils.random import derive_prng


class TestAleaPRNG:
    """Seeded stream behavior."""

    def test_same_seed_same_stream(self):
        a = AleaPRNG("seed")
        b = AleaPRNG("seed")
        assert [a.random() for _ in range(20)] == [b.random() for _ in range(20)]

    def test_different_seeds_differ(self):
        assert AleaPRNG("one").random() != AleaPRNG("two").random()

    def test_values_in_unit_interval(self):
        prng = AleaPRNG(12345)
        values = [prng.random() for _ in range(1000)]
        assert all(0.0 <= v < 1.0 for v in values)
        assert prng.call_count == 1000

    def test_randint_is_inclusive(self):
        prng = AleaPRNG("dice")
        rolls = {prng.randint(1, 3) for _ in range(200)}
        assert rolls == {1, 2, 3}

    def test_choice_on_empty_raises(self):
        with pytest.raises(IndexError):
            AleaPRNG("x").choice([])

    def test_shuffle_is_a_seeded_permutation(self):
        items = list(range(30))
        shuffled = AleaPRNG("deck").shuffle(list(items))
        assert sorted(shuffled) == items
        assert shuffled != items
        assert AleaPRNG("deck").shuffle(list(items)) == shuffled

    def test_shuffle_works_in_place(self):
        items = [3, 1, 2]
        assert AleaPRNG("deck").shuffle(items) is items
        assert AleaPRNG("deck").shuffle([]) == []

    def test_stage_streams_are_independent(self):
        assert derive_prng("world", "points").random() != derive_prng("world", "roads").random()
        assert derive_prng("world", "points").random() == derive_prng("world", "points").random()


class TestMarkov:
    """Syllable chains."""

    def test_split_syllables(self):
        assert "".join(split_syllables("silverdale")) == "silverdale"
        assert len(split_syllables("silverdale")) > 1
        assert split_syllables("brr") == ["brr"]

    def test_chain_starts_and_ends(self):
        chain = MarkovChain.from_names(["Aldmark", "Eldmark"])
        assert "" in chain.data
        assert any("" in successors for key, successors in chain.data.items() if key)

    def test_generated_names_are_capitalized(self):
        chain = MarkovChain.from_names(DEFAULT_NAME_BASES[0].sample_names())
        generator = MarkovNameGenerator(AleaPRNG("markov"))
        names = [generator.generate(chain) for _ in range(20)]
        produced = [n for n in names if n]
        assert produced
        assert all(n[0].isupper() for n in produced)


class TestNameGenerator:
    """Distinct names per category."""

    @pytest.mark.parametrize("category", list(NameCategory))
    def test_count_and_distinct(self, category):
        names = NameGenerator("distinct").generate_names(25, category)
        assert len(names) == 25
        assert len({n.lower() for n in names}) == 25
        assert all(names)

    def test_no_repeats_across_calls(self):
        generator = NameGenerator("calls")
        first = generator.generate_names(10, NameCategory.CITY)
        second = generator.generate_names(10, NameCategory.CITY)
        assert not {n.lower() for n in first} & {n.lower() for n in second}

    def test_reset_replays(self):
        generator = NameGenerator("replay")
        first = generator.generate_names(8, NameCategory.KINGDOM)
        generator.reset()
        assert generator.generate_names(8, NameCategory.KINGDOM) == first

    def test_same_seed_same_names(self):
        a = NameGenerator(42).generate_names(12, "river")
        b = NameGenerator(42).generate_names(12, "river")
        assert a == b

    def test_large_requests_still_distinct(self):
        names = NameGenerator("many").generate_names(300, NameCategory.BASE)
        assert len({n.lower() for n in names}) == 300

    def test_unknown_category(self):
        with pytest.raises(ValueError):
            NameGenerator("x").generate_names(1, "mountain")
