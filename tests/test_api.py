import pytest

import multisum
from multisum import api
from multisum.transfer import TransferManager


class _Recorder:
    """CPU stand-in for a kernel launch, keeps the managers it was given."""

    def __init__(self):
        self.managers = []
        self.configs = []

    def manager(self, device='cuda'):
        tm = TransferManager('cpu')
        self.managers.append(tm)
        return tm

    def launch(self, d_in, d_out, config=None):
        self.configs.append(config)
        d_out.tensor.copy_(d_in.tensor.sum(dim=0))


@pytest.fixture
def recorder(monkeypatch):
    rec = _Recorder()
    monkeypatch.setattr(api, 'TransferManager', rec.manager)
    for module in (api.kernel_baseline, api.kernel_coalesced, api.kernel_shared):
        monkeypatch.setattr(module, 'launch', rec.launch)
    return rec


@pytest.mark.parametrize("fn", [multisum.sum, multisum.sum_O1, multisum.sum_O2])
def test_empty_vectors_need_no_device(fn):
    assert fn([[], [], []]) == []


@pytest.mark.parametrize("fn", [multisum.sum, multisum.sum_O1, multisum.sum_O2])
def test_ragged_inputs_rejected(fn):
    with pytest.raises(ValueError):
        fn([[1, 2], [3]])


def test_three_by_three(recorder):
    inputs = [[1, 2, 3], [10, 20, 30], [100, 200, 300]]
    for fn in multisum.VARIANTS.values():
        assert fn(inputs) == [111, 222, 333]


def test_single_vector_is_identity(recorder):
    assert multisum.sum([[5]]) == [5]
    assert multisum.sum_O2([[4, 0, 9]]) == [4, 0, 9]


def test_two_vector_form(recorder):
    a = [1, 2, 3]
    b = [4, 5, 6]
    assert multisum.sum(a, b) == multisum.sum([a, b]) == [5, 7, 9]


def test_buffers_released_after_call(recorder):
    multisum.sum_O1([[1, 2], [3, 4]])
    assert len(recorder.managers) == 1
    assert recorder.managers[0].live_buffers == 0


def test_buffers_released_when_launch_fails(recorder, monkeypatch):
    def fail(d_in, d_out, config=None):
        raise multisum.KernelLaunchError("rejected")

    monkeypatch.setattr(api.kernel_shared, 'launch', fail)
    with pytest.raises(multisum.KernelLaunchError):
        multisum.sum_O2([[1, 2], [3, 4]])
    assert recorder.managers[0].live_buffers == 0


def test_config_is_passed_through(recorder):
    config = multisum.KernelConfig(block_size=64)
    multisum.sum([[1], [2]], config=config)
    assert recorder.configs == [config]


def test_error_hierarchy():
    for error in (multisum.AllocationError, multisum.TransferError, multisum.KernelLaunchError):
        assert issubclass(error, multisum.MultisumError)
        assert issubclass(error, RuntimeError)
