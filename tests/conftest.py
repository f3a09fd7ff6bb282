"""
Shared pytest fixtures for Markov engine and service tests.
"""
import random
from typing import Iterable, List

import pytest


SAMPLE_WORD_CORPUS = "the cat sat on the mat the cat jumped over the mat"

SAMPLE_PROSE = """
The universe is vast and full of mysteries.   Stars, planets, and galaxies
await exploration. The stars are beautiful tonight, and the universe is
quiet. Friends always support each other, and friends share the stars.
"""


class ScriptedRandom(random.Random):
    """
    Random source whose random() replays a fixed list of values.

    choice() and shuffle() still come from the seeded base generator.
    """

    def __init__(self, values: Iterable[float], seed: int = 0):
        super().__init__(seed)
        self._values: List[float] = list(values)
        self._index = 0

    def random(self) -> float:
        value = self._values[self._index % len(self._values)]
        self._index += 1
        return value


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source."""
    return random.Random(1234)


@pytest.fixture
def scripted_random():
    """Factory for ScriptedRandom instances."""
    return ScriptedRandom


@pytest.fixture
def word_corpus() -> str:
    return SAMPLE_WORD_CORPUS


@pytest.fixture
def prose_corpus() -> str:
    """Multi-line corpus with irregular whitespace."""
    return SAMPLE_PROSE
