import pytest
import torch

from multisum.errors import AllocationError, TransferError
from multisum.transfer import DTYPE, TransferManager, as_host_rows


def test_upload_is_row_major():
    with TransferManager('cpu') as tm:
        d_in = tm.upload([[1, 2, 3], [10, 20, 30]])
        assert d_in.shape == (2, 3)
        assert d_in.length == 3
        assert d_in.tensor.dtype == DTYPE
        assert d_in.tensor.is_contiguous()
        # vector k occupies k*N .. k*N+N-1
        assert d_in.tensor.reshape(-1).tolist() == [1, 2, 3, 10, 20, 30]


def test_upload_accepts_tensors_and_tuples():
    rows = torch.tensor([[4, 5], [6, 7]], dtype=torch.int64)
    assert as_host_rows(rows).tolist() == [[4, 5], [6, 7]]
    assert as_host_rows(((1, 2), torch.tensor([3, 4]))).tolist() == [[1, 2], [3, 4]]
    assert as_host_rows(rows).dtype == DTYPE


def test_ragged_input_rejected_before_allocation():
    with TransferManager('cpu') as tm:
        with pytest.raises(ValueError, match="length 2, expected 3"):
            tm.upload([[1, 2, 3], [1, 2]])
        assert tm.live_buffers == 0


def test_empty_input_set_rejected():
    with pytest.raises(ValueError, match="at least one vector"):
        as_host_rows([])


def test_non_vector_rows_rejected():
    with pytest.raises(ValueError, match="1-dimensional"):
        as_host_rows([1, 2, 3])


def test_release_is_idempotent():
    with TransferManager('cpu') as tm:
        d_out = tm.allocate_output(4)
        assert tm.live_buffers == 1
        tm.release(d_out)
        tm.release(d_out)
        assert d_out.released
        assert tm.live_buffers == 0


def test_scope_exit_releases_everything():
    tm = TransferManager('cpu')
    with tm:
        d_in = tm.upload([[1], [2]])
        d_out = tm.allocate_output(1)
    assert d_in.released and d_out.released
    assert tm.live_buffers == 0


def test_scope_exit_releases_on_error():
    tm = TransferManager('cpu')
    with pytest.raises(KeyError):
        with tm:
            d_out = tm.allocate_output(8)
            raise KeyError("boom")
    assert d_out.released


def test_download_copies_prefix():
    with TransferManager('cpu') as tm:
        d_in = tm.upload([[7, 8, 9]])
        assert tm.download(d_in, 3) == [7, 8, 9]
        assert tm.download(d_in, 0) == []


def test_download_short_copy_is_transfer_error():
    with TransferManager('cpu') as tm:
        d_out = tm.allocate_output(2)
        with pytest.raises(TransferError, match="returned 2 elements, expected 5"):
            tm.download(d_out, 5)


def test_download_after_release_is_transfer_error():
    with TransferManager('cpu') as tm:
        d_out = tm.allocate_output(2)
        tm.release(d_out)
        with pytest.raises(TransferError):
            tm.download(d_out, 2)


def test_negative_output_length_rejected():
    with TransferManager('cpu') as tm:
        with pytest.raises(ValueError):
            tm.allocate_output(-1)


def test_allocation_failure(monkeypatch):
    def fail(*args, **kwargs):
        raise RuntimeError("CUDA out of memory")

    with TransferManager('cpu') as tm:
        monkeypatch.setattr(torch, 'empty', fail)
        with pytest.raises(AllocationError, match="could not reserve 6 int32 elements") as info:
            tm.upload([[1, 2, 3], [4, 5, 6]])
        assert isinstance(info.value.__cause__, RuntimeError)
        assert tm.live_buffers == 0


def test_copy_failure_leaves_no_buffer(monkeypatch):
    def fail(self, src, non_blocking=False):
        raise RuntimeError("copy aborted")

    with TransferManager('cpu') as tm:
        monkeypatch.setattr(torch.Tensor, 'copy_', fail)
        with pytest.raises(TransferError, match="host-to-device copy"):
            tm.upload([[1, 2], [3, 4]])
        monkeypatch.undo()
        assert tm.live_buffers == 0


def test_cuda_manager_without_cuda(monkeypatch):
    monkeypatch.setattr(torch.cuda, 'is_available', lambda: False)
    with pytest.raises(AllocationError, match="not available"):
        TransferManager('cuda')


def test_prepared_rows_are_not_restacked():
    host = torch.tensor([[1, 2], [3, 4]], dtype=DTYPE)
    assert as_host_rows(host) is host


@pytest.mark.parametrize("inputs", [
    [[1.5, 2.0], [3, 4]],
    [[True, False]],
    torch.tensor([[0.5, 1.0]]),
])
def test_non_integer_elements_rejected(inputs):
    with pytest.raises(ValueError, match="must hold integers"):
        as_host_rows(inputs)


@pytest.mark.parametrize("value", [2 ** 31, -2 ** 31 - 1])
def test_values_outside_int32_rejected(value):
    with pytest.raises(ValueError, match="outside the int32 range"):
        as_host_rows([[0, 1], [value, 2]])


def test_int32_bounds_accepted():
    rows = as_host_rows([[2 ** 31 - 1, -2 ** 31]])
    assert rows.tolist() == [[2 ** 31 - 1, -2 ** 31]]


def test_corrupted_copy_detected(monkeypatch):
    original = torch.Tensor.copy_

    def drop_last_row(self, src, non_blocking=False):
        original(self, src)
        self[-1].zero_()
        return self

    with TransferManager('cpu') as tm:
        monkeypatch.setattr(torch.Tensor, 'copy_', drop_last_row)
        with pytest.raises(TransferError, match="row 1 checksum differs"):
            tm.upload([[1, 2], [3, 4]])
        monkeypatch.undo()
        assert tm.live_buffers == 0
