#!/usr/bin/env python3
"""
Command-line babble generator
Train a Markov chain on a text file and print generated samples
"""

import argparse
import random
import sys

from babble.config import settings
from babble.services.errors import MarkovError
from babble.services.markov import MODES, MarkovModel
from babble.utils.logger import setup_logger

logger = setup_logger("babble.cli")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Generate look-alike text with a Markov chain")

    parser.add_argument("input", help="UTF-8 text file to train on ('-' reads stdin)")
    parser.add_argument("--order", type=int, default=settings.DEFAULT_ORDER,
                        help="Chain order (tokens per state)")
    parser.add_argument("--mode", choices=MODES, default=settings.DEFAULT_MODE,
                        help="Tokenize by character or by word")
    parser.add_argument("--length", type=int, default=settings.DEFAULT_LENGTH,
                        help="Maximum number of tokens to generate")
    parser.add_argument("--temperature", type=float, default=settings.DEFAULT_TEMPERATURE,
                        help="0 = greedy, 1 = corpus distribution, >1 = flatter")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed the random source for reproducible output")
    parser.add_argument("--count", type=int, default=1, help="Number of samples to print")
    parser.add_argument("--stats", action="store_true", help="Print model statistics")

    return parser.parse_args(argv)


def read_text(path: str) -> str:
    """Read a UTF-8 corpus from a file path or stdin."""
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        text = read_text(args.input)
    except (OSError, UnicodeDecodeError) as e:
        print(f"error: cannot read {args.input}: {e}", file=sys.stderr)
        return 1

    try:
        model = MarkovModel(args.order, rng=random.Random(args.seed))
        model.train(text, args.mode)

        if args.stats:
            stats = model.get_stats()
            print(f"states: {stats.state_count:,}")
            print(f"average branching factor: {stats.average_branching_factor:.2f}")

        for _ in range(max(0, args.count)):
            print(model.generate(args.length, args.mode, args.temperature))
    except MarkovError as e:
        logger.debug(f"[ERR] {e.code}: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
