from . import kernel_baseline, kernel_coalesced, kernel_shared
from .transfer import TransferManager, as_host_rows


def _invoke(launch, inputs, config=None, device='cuda'):
    host = as_host_rows(inputs)
    _, n = host.shape
    if n == 0:
        return []

    with TransferManager(device) as tm:
        d_in = tm.upload(host)
        d_out = tm.allocate_output(n)
        launch(d_in, d_out, config)
        tm.release(d_in)
        result = tm.download(d_out, n)
        tm.release(d_out)
    return result


def sum(*vectors, config=None):
    """
    Element-wise sum of K equal-length integer vectors, baseline kernel.

    Accepts either one input set, sum([a, b, c]), or the vectors themselves,
    sum(a, b).

    Returns:
        list of N ints, element i is the sum of element i over all inputs.
    """
    inputs = vectors[0] if len(vectors) == 1 else vectors
    return _invoke(kernel_baseline.launch, inputs, config)


def sum_O1(inputs, config=None):
    """Same contract as sum(), coalesced kernel."""
    return _invoke(kernel_coalesced.launch, inputs, config)


def sum_O2(inputs, config=None):
    """Same contract as sum(), shared-memory staging kernel."""
    return _invoke(kernel_shared.launch, inputs, config)


VARIANTS = {
    'baseline': sum,
    'o1': sum_O1,
    'o2': sum_O2,
}
