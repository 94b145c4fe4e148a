"""
Host <-> device staging for one multi-vector sum invocation.

The K input vectors are laid out row-major in a single K x N int32 device
tensor: vector k occupies flat offsets k*N .. k*N+N-1. Every kernel variant
indexes the buffer with that layout.
"""

import torch

from .errors import AllocationError, TransferError

DTYPE = torch.int32
INT32_MIN = torch.iinfo(DTYPE).min
INT32_MAX = torch.iinfo(DTYPE).max


class DeviceBuffer:
    """Device-resident tensor owned by a TransferManager."""

    __slots__ = ('tensor', 'shape')

    def __init__(self, tensor):
        self.tensor = tensor
        self.shape = tuple(tensor.shape)

    @property
    def released(self):
        return self.tensor is None

    @property
    def length(self):
        # N for both the K x N input and the N-length output
        return self.shape[-1] if self.shape else 0

    def __repr__(self):
        state = 'released' if self.released else 'live'
        return f"DeviceBuffer(shape={self.shape}, {state})"


def _as_row(k, vector):
    row = torch.as_tensor(vector, device='cpu')
    if row.dim() != 1:
        raise ValueError(f"input vector {k} must be 1-dimensional, got shape {tuple(row.shape)}")
    # torch.as_tensor([]) is float32
    if row.numel() == 0:
        return row.to(DTYPE)
    if row.dtype == torch.bool or row.dtype.is_floating_point or row.dtype.is_complex:
        raise ValueError(f"input vector {k} must hold integers, got {row.dtype}")
    if row.dtype != DTYPE and (row.min().item() < INT32_MIN or row.max().item() > INT32_MAX):
        raise ValueError(f"input vector {k} has values outside the int32 range")
    return row.to(DTYPE)


def as_host_rows(inputs):
    """
    Stack the input set into a contiguous K x N int32 host tensor.

    A 2-D int32 CPU tensor is already in that form and is returned as is.

    Raises:
        ValueError: empty or ragged set, non-integer elements, or values
            that do not fit in int32.
    """
    if isinstance(inputs, torch.Tensor) and inputs.dim() == 2:
        if inputs.dtype == DTYPE and inputs.device.type == 'cpu' and inputs.shape[0] > 0:
            return inputs.contiguous()
        inputs = list(inputs.cpu())
    rows = [_as_row(k, v) for k, v in enumerate(inputs)]
    if not rows:
        raise ValueError("input set must contain at least one vector")

    n = rows[0].numel()
    for k, row in enumerate(rows):
        if row.numel() != n:
            raise ValueError(f"input vector {k} has length {row.numel()}, expected {n}")

    return torch.stack(rows).contiguous()


class TransferManager:
    """
    Owns every device buffer of one invocation.

    Use as a context manager: buffers handed out inside the block are
    released on exit, whether the block returns or raises.

        with TransferManager() as tm:
            d_in = tm.upload(inputs)
            d_out = tm.allocate_output(d_in.length)
            ...
            result = tm.download(d_out, d_in.length)
    """

    def __init__(self, device='cuda'):
        self.device = torch.device(device)
        if self.device.type == 'cuda' and not torch.cuda.is_available():
            raise AllocationError("CUDA device requested but torch.cuda is not available")
        self._buffers = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def live_buffers(self):
        return len(self._buffers)

    def synchronize(self):
        if self.device.type == 'cuda':
            torch.cuda.synchronize(self.device)

    def _allocate(self, shape):
        try:
            tensor = torch.empty(shape, dtype=DTYPE, device=self.device)
        except RuntimeError as err:
            elements = 1
            for dim in shape:
                elements *= dim
            raise AllocationError(
                f"could not reserve {elements} int32 elements on {self.device}: {err}"
            ) from err
        buffer = DeviceBuffer(tensor)
        self._buffers.append(buffer)
        return buffer

    def upload(self, inputs):
        """Copy the K input vectors into one contiguous K x N device buffer."""
        host = as_host_rows(inputs)
        k, n = host.shape
        buffer = self._allocate((k, n))
        try:
            buffer.tensor.copy_(host)
            self.synchronize()
            device_sums = buffer.tensor.sum(dim=1, dtype=torch.int64).cpu()
        except RuntimeError as err:
            self.release(buffer)
            raise TransferError(f"host-to-device copy of {k}x{n} elements failed: {err}") from err

        # per-row checksum of what landed on the device
        mismatched = (device_sums != host.sum(dim=1, dtype=torch.int64)).nonzero()
        if mismatched.numel():
            self.release(buffer)
            raise TransferError(
                f"host-to-device copy corrupted: row {mismatched[0].item()} checksum differs"
            )
        return buffer

    def allocate_output(self, n):
        """Reserve an n-element output buffer, left uninitialized."""
        if n < 0:
            raise ValueError(f"output length must be non-negative, got {n}")
        return self._allocate((n,))

    def download(self, buffer, n):
        """Copy the first n elements of buffer back to a host list."""
        if buffer.released:
            raise TransferError(f"cannot download from {buffer!r}")
        try:
            self.synchronize()
            host = buffer.tensor.reshape(-1)[:n].to('cpu')
        except RuntimeError as err:
            raise TransferError(f"device-to-host copy of {n} elements failed: {err}") from err
        if host.numel() != n:
            raise TransferError(f"device-to-host copy returned {host.numel()} elements, expected {n}")
        return host.tolist()

    def release(self, buffer):
        """Free buffer. Releasing an already released buffer does nothing."""
        if buffer.released:
            return
        self._buffers = [b for b in self._buffers if b is not buffer]
        buffer.tensor = None

    def close(self):
        for buffer in list(self._buffers):
            self.release(buffer)
