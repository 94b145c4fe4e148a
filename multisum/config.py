import os
from dataclasses import dataclass

# Architecture list for the extension build, e.g. '8.9' for L4
if os.environ.get('MULTISUM_CUDA_ARCH'):
    os.environ.setdefault('TORCH_CUDA_ARCH_LIST', os.environ['MULTISUM_CUDA_ARCH'])

WARP_SIZE = 32
MAX_BLOCK_SIZE = 1024
# Legacy grid limit, anything larger is launched in several waves
MAX_BLOCKS_PER_WAVE = 65535
# Static shared memory available to one block without opt-in
SHARED_MEM_LIMIT = 48 * 1024

EXTRA_CUDA_CFLAGS = ['-O3', '--use_fast_math']


def _env_block_size(default=256):
    raw = os.environ.get('MULTISUM_BLOCK_SIZE')
    if not raw:
        return default
    value = int(raw)
    if value <= 0 or value % WARP_SIZE or value > MAX_BLOCK_SIZE:
        raise ValueError(
            f"MULTISUM_BLOCK_SIZE must be a multiple of {WARP_SIZE} in "
            f"[{WARP_SIZE}, {MAX_BLOCK_SIZE}], got {raw!r}"
        )
    return value


def verbose_build():
    return os.environ.get('MULTISUM_VERBOSE_BUILD', '').lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class KernelConfig:
    """Parallel decomposition used for one kernel launch.

    Attributes:
        block_size: threads per block (the group that shares a barrier).
        max_blocks: blocks launched per wave before the index space is split.
        use_shared: stage the K x block_size tile through shared memory.
    """
    block_size: int = 256
    max_blocks: int = MAX_BLOCKS_PER_WAVE
    use_shared: bool = False

    def __post_init__(self):
        if self.block_size <= 0 or self.block_size > MAX_BLOCK_SIZE:
            raise ValueError(f"block_size must be in [1, {MAX_BLOCK_SIZE}], got {self.block_size}")
        if self.max_blocks <= 0:
            raise ValueError(f"max_blocks must be positive, got {self.max_blocks}")

    @property
    def wave_size(self):
        return self.block_size * self.max_blocks


def default_config(use_shared=False):
    return KernelConfig(block_size=_env_block_size(), use_shared=use_shared)
