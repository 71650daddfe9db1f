"""Unit tests for default session names."""

import random

from name_generator import ADJECTIVES, NOUNS, RUN_NOUNS, suggest_name


class TestSuggestName:
    def test_protocol_name_shape(self):
        adjective, noun = suggest_name("Protocol").split(" ")
        assert adjective in ADJECTIVES
        assert noun in NOUNS

    def test_run_uses_run_nouns(self):
        rng = random.Random(7)
        for _ in range(50):
            _, noun = suggest_name("Run", rng).split(" ")
            assert noun in RUN_NOUNS

    def test_seeded_rng_is_repeatable(self):
        assert suggest_name("Protocol", random.Random(42)) == suggest_name("Protocol", random.Random(42))

    def test_unknown_kind_uses_general_pool(self):
        rng = random.Random(1)
        nouns = {suggest_name("Swim", rng).split(" ")[1] for _ in range(200)}
        assert nouns <= set(NOUNS)
        assert nouns - set(RUN_NOUNS)
