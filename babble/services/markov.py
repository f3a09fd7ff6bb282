"""
Markov chain text generator (CPU-only).
Character- or word-level chains of any order >= 1, with temperature sampling.
Training replaces the whole model; nothing is persisted between sessions.
"""
from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass
from typing import Dict, List, Literal, Mapping, Optional, Tuple

import numpy as np

from .errors import (
    DegenerateDistribution,
    InvalidInput,
    InvalidOrder,
    InvalidTemperature,
    NotTrained,
)

logger = logging.getLogger(__name__)

Mode = Literal["char", "word"]
MODES: Tuple[str, ...] = ("char", "word")

_WHITESPACE = re.compile(r"\s+")


@dataclass
class ChainStats:
    """Size of a trained transition table."""
    state_count: int = 0
    average_branching_factor: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "state_count": self.state_count,
            "average_branching_factor": self.average_branching_factor,
        }


def _check_mode(mode: str) -> str:
    if mode not in MODES:
        raise InvalidInput(f"unknown tokenization mode {mode!r}, expected one of {MODES}")
    return mode


def tokenize(text: str, mode: Mode = "char") -> List[str]:
    """
    Split text into tokens.

    Whitespace runs collapse to a single space and the ends are trimmed.
    In "char" mode every remaining character (spaces included) is a token;
    in "word" mode tokens are the whitespace-separated substrings.
    """
    _check_mode(mode)
    if not isinstance(text, str):
        raise InvalidInput("training text must be a string")

    cleaned = _WHITESPACE.sub(" ", text).strip()
    if not cleaned:
        raise InvalidInput("training text is empty")

    if mode == "char":
        return list(cleaned)
    return cleaned.split(" ")


def state_key(tokens) -> str:
    """Canonical transition-table key for a window of tokens."""
    return " ".join(tokens)


def sample(
    transitions: Mapping[str, int],
    temperature: float = 1.0,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Draw the next token from a {token: count} mapping.

    temperature == 0 keeps only the tokens tied for the highest count,
    temperature > 0 weights each token by count ** (1 / temperature).
    Tokens are walked in the mapping's iteration order, so ties at
    temperature 0 resolve stably for a given table.
    """
    if temperature < 0:
        raise InvalidTemperature(f"temperature must be >= 0, got {temperature}")
    if not transitions:
        raise DegenerateDistribution("no transitions to sample from")

    rng = rng or random
    tokens = list(transitions.keys())
    counts = np.fromiter(transitions.values(), dtype=np.float64, count=len(tokens))

    if temperature == 0:
        weights = (counts == counts.max()).astype(np.float64)
    else:
        with np.errstate(over="ignore"):
            weights = np.power(counts, 1.0 / temperature)
            overflowed = not np.isfinite(weights.sum())
        if overflowed:
            # count ** (1/t) or its sum overflowed; rescale so the max weight is 1
            with np.errstate(under="ignore"):
                weights = np.power(counts / counts.max(), 1.0 / temperature)

    total = weights.sum()
    if total <= 0:
        raise DegenerateDistribution("all sampling weights are zero")

    cumulative = np.cumsum(weights / total)
    r = rng.random()
    idx = int(np.searchsorted(cumulative, r, side="right"))
    if idx >= len(tokens):
        # round-off left r above the final cumulative value
        return tokens[-1]
    return tokens[idx]


class MarkovModel:
    """
    n-th order Markov chain over characters or words.

    The model owns a transition table (state key -> next token -> count)
    and a start-state pool. Both are rebuilt together on every train()
    call. The random source is injected so callers can make generation
    reproducible by seeding it.

    Not thread-safe: callers serialize train/generate/clear on one instance.
    """

    def __init__(self, order: int = 1, rng: Optional[random.Random] = None):
        if isinstance(order, bool) or not isinstance(order, int) or order < 1:
            raise InvalidOrder(f"order must be a positive integer, got {order!r}")
        self._order = order
        self.rng = rng or random.Random()
        self._transitions: Dict[str, Dict[str, int]] = {}
        self._start_states: List[Tuple[str, ...]] = []

    @property
    def order(self) -> int:
        return self._order

    @property
    def is_trained(self) -> bool:
        return bool(self._transitions) and bool(self._start_states)

    @property
    def transitions(self) -> Dict[str, Dict[str, int]]:
        """Copy of the transition table."""
        return {state: dict(nxt) for state, nxt in self._transitions.items()}

    @property
    def start_states(self) -> List[str]:
        """Keys of the start-state pool, in shuffled order."""
        return [state_key(tokens) for tokens in self._start_states]

    def train(self, text: str, mode: Mode = "char") -> None:
        """
        Build the transition table from a corpus.

        Replaces any previous table; on failure the model is left as it was.
        """
        tokens = tokenize(text, mode)
        if len(tokens) <= self._order:
            raise InvalidInput(
                f"text too short for an order-{self._order} chain "
                f"({len(tokens)} tokens)"
            )

        transitions: Dict[str, Dict[str, int]] = {}
        start_states: List[Tuple[str, ...]] = []

        for i in range(len(tokens) - self._order):
            window = tuple(tokens[i : i + self._order])
            state = state_key(window)
            nxt = tokens[i + self._order]

            if i == 0:
                start_states.append(window)

            counts = transitions.setdefault(state, {})
            counts[nxt] = counts.get(nxt, 0) + 1

        self.rng.shuffle(start_states)

        self._transitions = transitions
        self._start_states = start_states
        logger.info(
            "[MARKOV] trained order=%d mode=%s tokens=%d states=%d",
            self._order, mode, len(tokens), len(transitions),
        )

    def generate(
        self,
        length: int = 100,
        mode: Mode = "char",
        temperature: float = 1.0,
    ) -> str:
        """
        Sample up to `length` new tokens after a random start state.

        Stops early when the chain reaches a state with no recorded
        successors. The start state's own tokens lead the output.
        """
        _check_mode(mode)
        if length < 0:
            raise InvalidInput(f"length must be >= 0, got {length}")
        if temperature < 0:
            raise InvalidTemperature(f"temperature must be >= 0, got {temperature}")

        # a later train() swaps these attributes, never mutates them
        transitions = self._transitions
        start_states = self._start_states
        if not transitions or not start_states:
            raise NotTrained("model is not trained, call train() first")

        output = list(self.rng.choice(start_states))
        state = state_key(output)

        for _ in range(length):
            dist = transitions.get(state)
            if not dist:
                break
            output.append(sample(dist, temperature, self.rng))
            state = state_key(output[-self._order :])
            if state not in transitions:
                break

        if mode == "char":
            return "".join(output)
        return " ".join(output)

    def get_stats(self) -> ChainStats:
        """State count and mean number of distinct successors per state."""
        state_count = len(self._transitions)
        if state_count == 0:
            return ChainStats()
        branches = sum(len(nxt) for nxt in self._transitions.values())
        return ChainStats(
            state_count=state_count,
            average_branching_factor=branches / state_count,
        )

    def clear(self) -> None:
        """Drop the table and start pool, back to the untrained state."""
        self._transitions = {}
        self._start_states = []


def train_from_text(
    text: str,
    order: int = 2,
    mode: Mode = "char",
    rng: Optional[random.Random] = None,
) -> MarkovModel:
    model = MarkovModel(order, rng=rng)
    model.train(text, mode)
    return model
