from .config import default_config
from .launch import build_extension, run_waves

cuda_source = """
#include <torch/extension.h>
#include <cuda_runtime.h>

// inputs is row-major K x N: vector k starts at k * N.
// Lane t of block b owns i = t * gridDim.x + b, so neighbouring lanes
// read elements gridDim.x apart in each row.
__global__ void multisum_baseline_kernel(
    const int* inputs,
    int* output,
    const int K,
    const long long N,
    const long long offset,
    const long long count
) {
    const long long local = (long long)threadIdx.x * gridDim.x + blockIdx.x;
    if (local >= count) {
        return;
    }
    const long long i = offset + local;

    int sum = 0;
    for (int k = 0; k < K; ++k) {
        sum += inputs[k * N + i];
    }
    output[i] = sum;
}

void multisum_baseline(
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

    multisum_baseline_kernel<<<grid, block>>>(
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
void multisum_baseline(torch::Tensor inputs, torch::Tensor output, int64_t offset, int64_t count, int64_t block_size);
PYBIND11_MODULE(TORCH_EXTENSION_NAME, m) {
    m.def("multisum_baseline", &multisum_baseline, "Element-wise sum of K vectors, one thread per output");
}
"""


def launch(d_in, d_out, config=None):
    """
    Baseline kernel: one thread per output, serial loop over the K rows.

    Args:
        d_in: uploaded K x N DeviceBuffer.
        d_out: N-element output DeviceBuffer, every slot is written once.
        config: KernelConfig, defaults to the environment-derived one.
    """
    config = config or default_config()
    module = build_extension('multisum_baseline', cpp_source, cuda_source)
    run_waves(module.multisum_baseline, d_in, d_out, config)
