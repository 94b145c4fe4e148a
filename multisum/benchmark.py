"""Wall-clock timing of one variant, including the host/device transfers."""

import time

import torch


def time_variant(fn, inputs, repeats=10, warmup=1):
    """
    Mean milliseconds per call of fn(inputs) over `repeats` calls.

    The first `warmup` calls are not timed; they also absorb the one-off
    extension build.
    """
    if repeats <= 0:
        raise ValueError(f"repeats must be positive, got {repeats}")
    for _ in range(warmup):
        fn(inputs)

    if torch.cuda.is_available():
        # Use CUDA Events for accurate GPU timing
        start_event = torch.cuda.Event(enable_timing=True)
        end_event = torch.cuda.Event(enable_timing=True)

        start_event.record()
        for _ in range(repeats):
            fn(inputs)
        end_event.record()
        end_event.synchronize()
        total_ms = start_event.elapsed_time(end_event)
    else:
        start = time.perf_counter()
        for _ in range(repeats):
            fn(inputs)
        total_ms = (time.perf_counter() - start) * 1_000

    return total_ms / repeats
