import time

import torch

from kohonen_mapper import InputSample, SomGrid

# --- Configuration ---
NUM_SAMPLES = 200
NUM_FEATURES = 16
MAP_SIZE = (30, 30)
NUM_NEURONS = MAP_SIZE[0] * MAP_SIZE[1]
SEED = 1

# --- Benchmarking Parameters ---
WARMUP_ITER = 2
BENCH_ITER = 5


def node_scan_winner(grid: SomGrid, sample: InputSample) -> tuple[int, int]:
    """
    Reference winner search: one Vector.distance call per node, first strict
    minimum wins.
    """
    best_distance = float('inf')
    winner = (0, 0)
    for node in grid.nodes():
        dist = node.committed.distance(sample.features)
        if dist < best_distance:
            best_distance = dist
            winner = node.index
    return winner


def benchmark_winner_search(find_winner, name: str, grid: SomGrid, samples: list[InputSample]):
    """
    Times one full pass of winner searches over all samples.
    """
    print(f"\n--- Benchmarking {name} ---")

    print(f"Running {WARMUP_ITER} warm-up iterations...")
    for _ in range(WARMUP_ITER):
        for sample in samples:
            find_winner(grid, sample)

    print(f"Running {BENCH_ITER} timed iterations...")
    start = time.perf_counter()
    for _ in range(BENCH_ITER):
        winners = [find_winner(grid, sample) for sample in samples]
    elapsed = time.perf_counter() - start

    avg_latency_ms = elapsed * 1000 / BENCH_ITER

    # For each sample, for each neuron, we compute distance over features.
    # 1 sub, 1 mul per feature.
    flops_per_pass = 2 * NUM_SAMPLES * NUM_NEURONS * NUM_FEATURES
    gflops = (flops_per_pass / (avg_latency_ms / 1000)) / 1e9

    print(f"  > Average Pass Latency: {avg_latency_ms:.2f} ms")
    print(f"  > Effective GFLOPS: {gflops:.3f}")

    return avg_latency_ms, winners


def main():
    """Main execution function."""
    print("--- Setting up Winner Search Benchmark ---")
    print(f"Samples: {NUM_SAMPLES}, Features: {NUM_FEATURES}")
    print(f"SOM Grid: {MAP_SIZE[0]}x{MAP_SIZE[1]} ({NUM_NEURONS} neurons)")

    grid = SomGrid.initialize(MAP_SIZE[0], MAP_SIZE[1], NUM_FEATURES, seed=SEED)
    generator = torch.Generator().manual_seed(SEED)
    samples = [InputSample(row) for row in torch.rand(NUM_SAMPLES, NUM_FEATURES, generator=generator, dtype=torch.float64)]

    scan_latency, scan_winners = benchmark_winner_search(node_scan_winner, "Per-node Vector scan", grid, samples)
    grid_latency, grid_winners = benchmark_winner_search(SomGrid.find_winner, "SomGrid.find_winner", grid, samples)

    print("\n--- Comparison Summary ---")
    print(f"Winners agree: {scan_winners == grid_winners}")
    print(f"Speedup (SomGrid vs per-node scan): {scan_latency / grid_latency:.2f}x")

if __name__ == "__main__":
    main()
