import functools

import torch
from torch.utils.cpp_extension import load_inline

from .config import EXTRA_CUDA_CFLAGS, verbose_build
from .errors import KernelLaunchError


def plan_waves(n, config):
    """Split [0, n) into (offset, count) waves of at most config.wave_size outputs."""
    waves = []
    offset = 0
    while offset < n:
        count = min(config.wave_size, n - offset)
        waves.append((offset, count))
        offset += count
    return waves


@functools.lru_cache(maxsize=None)
def build_extension(name, cpp_source, cuda_source):
    try:
        return load_inline(
            name=name,
            cpp_sources=cpp_source,
            cuda_sources=cuda_source,
            extra_cuda_cflags=EXTRA_CUDA_CFLAGS,
            verbose=verbose_build(),
        )
    except (RuntimeError, OSError, ImportError) as err:
        raise KernelLaunchError(f"failed to build extension {name!r}: {err}") from err


def run_waves(kernel, d_in, d_out, config):
    """
    Launch kernel once per wave and block until the device is done.

    kernel(inputs, output, offset, count, block_size) is the bound extension
    function; any rejection or device fault comes back as KernelLaunchError.
    """
    for offset, count in plan_waves(d_in.length, config):
        try:
            kernel(d_in.tensor, d_out.tensor, offset, count, config.block_size)
        except RuntimeError as err:
            raise KernelLaunchError(
                f"launch of wave [{offset}, {offset + count}) with block size "
                f"{config.block_size} failed: {err}"
            ) from err
    try:
        torch.cuda.synchronize(d_out.tensor.device)
    except RuntimeError as err:
        raise KernelLaunchError(f"kernel faulted during execution: {err}") from err
