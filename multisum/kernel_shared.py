from dataclasses import replace

from .config import SHARED_MEM_LIMIT, default_config
from .launch import build_extension, run_waves

cuda_source = """
#include <torch/extension.h>
#include <cuda_runtime.h>

// Each block covers a tile of blockDim.x outputs. A full tile walks the K
// rows in chunks of `chunk` rows: the block stages the chunk x blockDim.x
// slice of the row-major input into shared memory, waits at the block
// barrier, adds its own column into a running sum, and waits again before
// the next chunk overwrites the tile. The tail tile of a wave reads global
// memory directly.
__global__ void multisum_shared_kernel(
    const int* __restrict__ inputs,
    int* __restrict__ output,
    const int K,
    const long long N,
    const long long offset,
    const long long count,
    const int chunk,
    const bool vectorized
) {
    // aligned dynamic allocation, `chunk` rows of blockDim.x ints
    extern __shared__ __align__(sizeof(int4)) char shared_mem_char[];
    int* tile = reinterpret_cast<int*>(shared_mem_char);

    const int tid = threadIdx.x;
    const int B = blockDim.x;
    const long long base = offset + (long long)blockIdx.x * B;
    const long long end = offset + count;
    const long long i = base + tid;

    // uniform across the block, so every thread reaches the barriers or none does
    if (base + B <= end) {
        int sum = 0;
        for (int k0 = 0; k0 < K; k0 += chunk) {
            const int rows = min(chunk, K - k0);
            const int* __restrict__ src = inputs + k0 * N + base;
            if (vectorized) {
                // int4 loads: one pass moves four rows of the tile
                const int vecs_per_row = B / 4;
                int4* tile4 = reinterpret_cast<int4*>(tile);
                for (int v = tid; v < rows * vecs_per_row; v += B) {
                    const int k = v / vecs_per_row;
                    const int c = v % vecs_per_row;
                    tile4[v] = *reinterpret_cast<const int4*>(src + k * N + c * 4);
                }
            } else {
                for (int idx = tid; idx < rows * B; idx += B) {
                    const int k = idx / B;
                    const int c = idx % B;
                    tile[idx] = src[k * N + c];
                }
            }
            __syncthreads();

            for (int k = 0; k < rows; ++k) {
                sum += tile[k * B + tid];
            }
            __syncthreads();
        }
        output[i] = sum;
    } else if (i < end) {
        int sum = 0;
        for (int k = 0; k < K; ++k) {
            sum += inputs[k * N + i];
        }
        output[i] = sum;
    }
}

void multisum_shared(
    torch::Tensor inputs,
    torch::Tensor output,
    int64_t offset,
    int64_t count,
    int64_t block_size,
    int64_t chunk
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
    TORCH_CHECK(chunk > 0 && chunk <= K, "chunk must be in [1, K]");
    if (count == 0) {
        return;
    }

    const int blockSize = block_size;
    const int numBlocks = (count + blockSize - 1) / blockSize;

    size_t shared_mem_size = (size_t)chunk * blockSize * sizeof(int);
    TORCH_CHECK(shared_mem_size <= 48 * 1024, "chunk x block size tile does not fit in shared memory");

    const bool vectorized = (N % 4 == 0) && (blockSize % 4 == 0) && (offset % 4 == 0)
        && (reinterpret_cast<uintptr_t>(inputs.data_ptr<int>()) % sizeof(int4) == 0);

    dim3 grid(numBlocks);
    dim3 block(blockSize);

    multisum_shared_kernel<<<grid, block, shared_mem_size>>>(
        inputs.data_ptr<int>(),
        output.data_ptr<int>(),
        K,
        N,
        offset,
        count,
        (int)chunk,
        vectorized
    );

    cudaError_t err = cudaGetLastError();
    if (err != cudaSuccess) {
        throw std::runtime_error(cudaGetErrorString(err));
    }
}
"""

cpp_source = """
#include <torch/extension.h>
void multisum_shared(torch::Tensor inputs, torch::Tensor output, int64_t offset, int64_t count, int64_t block_size, int64_t chunk);
PYBIND11_MODULE(TORCH_EXTENSION_NAME, m) {
    m.def("multisum_shared", &multisum_shared, "Element-wise sum of K vectors staged through shared memory");
}
"""


def chunk_rows(k, block_size):
    """Rows of the K x block tile staged per pass, bounded by shared memory."""
    return max(1, min(k, SHARED_MEM_LIMIT // (4 * block_size)))


def launch(d_in, d_out, config=None):
    """
    Shared-memory kernel: blocks stage their K x block slice on chip,
    a chunk of rows at a time, before the per-thread accumulation.
    """
    config = config or default_config(use_shared=True)
    if not config.use_shared:
        config = replace(config, use_shared=True)
    chunk = chunk_rows(d_in.shape[0], config.block_size)
    module = build_extension('multisum_shared', cpp_source, cuda_source)

    def kernel(inputs, output, offset, count, block_size):
        module.multisum_shared(inputs, output, offset, count, block_size, chunk)

    run_waves(kernel, d_in, d_out, config)
