"""
Command-line driver: sums K random vectors on the GPU and checks the result
against a serial re-summation on the host.
"""

import argparse
import sys

import torch

from .api import VARIANTS
from .benchmark import time_variant
from .errors import MultisumError

DEFAULT_INPUTS_SIZE = 10
MIN_INPUTS_SIZE = 3
# 2^16 (65536 elements)
DEFAULT_N = 1 << 16


def clamp_inputs_size(value):
    if value is None:
        return DEFAULT_INPUTS_SIZE
    if value < MIN_INPUTS_SIZE:
        return DEFAULT_INPUTS_SIZE
    return value


def make_inputs(inputs_size, n, seed=None):
    """K vectors of n ints drawn from [0, 100)."""
    generator = torch.Generator()
    if seed is None:
        generator.seed()
    else:
        generator.manual_seed(seed)
    rows = torch.randint(0, 100, (inputs_size, n), generator=generator, dtype=torch.int32)
    return [row.tolist() for row in rows]


def verify_result(inputs, output):
    """Index of the first element that differs from the serial sum, or None."""
    if len(output) != len(inputs[0]):
        return min(len(output), len(inputs[0]))
    for i in range(len(inputs[0])):
        total = 0
        for vector in inputs:
            total += vector[i]
        if output[i] != total:
            return i
    return None


def build_parser():
    parser = argparse.ArgumentParser(
        prog='multisum',
        description='Element-wise sum of K integer vectors on a CUDA device.',
    )
    parser.add_argument('inputs_size', nargs='?', type=int, default=None,
                        help=f'number of input vectors K (default {DEFAULT_INPUTS_SIZE}, '
                             f'values below {MIN_INPUTS_SIZE} fall back to the default)')
    parser.add_argument('--variant', choices=sorted(VARIANTS), default='baseline')
    parser.add_argument('--size', type=int, default=DEFAULT_N, help='vector length N')
    parser.add_argument('--seed', type=int, default=None)
    parser.add_argument('--benchmark', type=int, default=0, metavar='R',
                        help='time R additional runs and print the mean')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    if args.size < 0:
        print(f"vector length must be non-negative, got {args.size}", file=sys.stderr)
        return 2

    inputs_size = clamp_inputs_size(args.inputs_size)
    if args.inputs_size is not None:
        print(f"Using input size {inputs_size}")

    inputs = make_inputs(inputs_size, args.size, args.seed)
    fn = VARIANTS[args.variant]

    try:
        output = fn(inputs)
        if args.benchmark > 0:
            mean_ms = time_variant(fn, inputs, repeats=args.benchmark, warmup=0)
    except MultisumError as err:
        print(f"{args.variant} failed: {err}", file=sys.stderr)
        return 1

    mismatch = verify_result(inputs, output)
    if mismatch is not None:
        print(f"MISMATCH at index {mismatch}", file=sys.stderr)
        return 1

    if args.benchmark > 0:
        print(f"{args.variant}: {mean_ms:.3f} ms per call over {args.benchmark} runs "
              f"(K={inputs_size}, N={args.size})")
    print("COMPLETED SUCCESSFULLY")
    return 0


if __name__ == '__main__':
    sys.exit(main())
