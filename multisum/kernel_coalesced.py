from .config import default_config
from .launch import build_extension, run_waves

cuda_source = """
#include <torch/extension.h>
#include <cuda_runtime.h>

// Block-major assignment: lanes of a warp own adjacent i, so at any k the
// warp reads one contiguous span of row k.
__global__ void multisum_coalesced_kernel(
    const int* __restrict__ inputs,
    int* __restrict__ output,
    const int K,
    const long long N,
    const long long offset,
    const long long count
) {
    const long long local = (long long)blockIdx.x * blockDim.x + threadIdx.x;
    if (local >= count) {
        return;
    }
    const long long i = offset + local;
    const int* __restrict__ row = inputs + i;

    // four rows in flight per step
    int sum0 = 0, sum1 = 0, sum2 = 0, sum3 = 0;
    int k = 0;
    for (; k + 4 <= K; k += 4) {
        sum0 += __ldg(row);
        sum1 += __ldg(row + N);
        sum2 += __ldg(row + 2 * N);
        sum3 += __ldg(row + 3 * N);
        row += 4 * N;
    }
    for (; k < K; ++k) {
        sum0 += __ldg(row);
        row += N;
    }
    output[i] = sum0 + sum1 + sum2 + sum3;
}

void multisum_coalesced(
    torch::Tensor inputs,
    torch::Tensor output,
    int64_t offset,
    int64_t count,
    int64_t block_size
) {
    TORCH_CHECK(inputs.device().is_cuda(), "inputs must be a CUDA tensor");
    TORCH_CHECK(output.device().is_cuda(), "output must be a CUDA tensor");
    TORCH_CHECK(inputs.dim() == 2, "inputs must be K x N");
    TORCH_CHECK(inputs.is_contiguous(), "inputs must be contiguous row-major");
    TORCH_CHECK(inputs.scalar_type() == torch::kInt32, "inputs must be int32");
    TORCH_CHECK(output.scalar_type() == torch::kInt32, "output must be int32");

    const int K = inputs.size(0);
    const long long N = inputs.size(1);
    TORCH_CHECK(output.numel() == N, "output must hold N elements");
    TORCH_CHECK(offset >= 0 && count >= 0 && offset + count <= N, "wave outside [0, N)");
    TORCH_CHECK(block_size > 0 && block_size <= 1024, "block size must be in [1, 1024]");
    if (count == 0) {
        return;
    }

    const int blockSize = block_size;
    const int numBlocks = (count + blockSize - 1) / blockSize;

    dim3 grid(numBlocks);
    dim3 block(blockSize);

    multisum_coalesced_kernel<<<grid, block>>>(
        inputs.data_ptr<int>(),
        output.data_ptr<int>(),
        K,
        N,
        offset,
        count
    );

    cudaError_t err = cudaGetLastError();
    if (err != cudaSuccess) {
        throw std::runtime_error(cudaGetErrorString(err));
    }
}
"""

cpp_source = """
#include <torch/extension.h>
void multisum_coalesced(torch::Tensor inputs, torch::Tensor output, int64_t offset, int64_t count, int64_t block_size);
PYBIND11_MODULE(TORCH_EXTENSION_NAME, m) {
    m.def("multisum_coalesced", &multisum_coalesced, "Element-wise sum of K vectors with coalesced row reads");
}
"""


def launch(d_in, d_out, config=None):
    """Coalesced kernel: same one-thread-per-output split as the baseline,
    with warps reading contiguous spans of each row."""
    config = config or default_config()
    module = build_extension('multisum_coalesced', cpp_source, cuda_source)
    run_waves(module.multisum_coalesced, d_in, d_out, config)
