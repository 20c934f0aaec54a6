import logging

import torch

from kohonen_mapper import SOM, TrainingConfig, setup_logging


def run_som_example():
    """
    Demonstrates the basic usage of the kohonen_mapper.SOM library.
    """
    setup_logging(logging.INFO)
    print("--- Running SOM Library Example ---")

    # 1. Configuration
    num_samples = 6
    input_features = 3
    som_map_size = (10, 10) # 10x10 grid, 100 neurons
    random_seed = 42 # For reproducibility
    # Every sample adds to the same epoch, so keep the shared neighbourhood small
    config = TrainingConfig(other_rate=0.3, radius_factor=0.25, seed=random_seed)

    print(f"Configuration: Samples={num_samples}, Features={input_features}, Map Size={som_map_size}")
    print(f"Hyperparameters: {config.to_dict()}")

    # 2. Generate Dummy Data
    # Two colour-like clusters, dark and bright
    generator = torch.Generator().manual_seed(random_seed)
    data1 = 0.2 * torch.rand(num_samples // 2, input_features, generator=generator, dtype=torch.float64)
    data2 = 0.8 + 0.2 * torch.rand(num_samples // 2, input_features, generator=generator, dtype=torch.float64)
    data = torch.cat([data1, data2], dim=0)

    print(f"Generated data of shape: {tuple(data.shape)}")

    # 3. Initialize the SOM
    print("\nInitializing SOM...")
    som_model = SOM(map_size=som_map_size, input_dim=input_features, spacing=1.0, config=config)
    print(f"SOM initialized. Number of neurons: {som_model.num_neurons}")
    initial_weights = som_model.get_weights() # Save for comparison later

    # 4. Train the SOM until the winner learning rate drops below the threshold
    print("\nTraining SOM...")
    state = som_model.train(data)
    print(f"Training complete after {state.epoch} epochs (converged={state.converged}).")
    print(f"Final rates: win={state.win_rate:.4f}, other={state.other_rate:.4f}, radius={state.neighborhood_radius:.4f}")

    trained_weights = som_model.get_weights()
    assert not torch.equal(initial_weights, trained_weights), "Weights did not change after training!"

    # 5. Map Data to the SOM
    print("\nBMU (row, col) locations for each sample:")
    bmu_locations = som_model.map_to_bmu_locations(data)
    for i in range(data.shape[0]):
        print(f"  Sample {i}: [{data[i, 0]:.2f}, {data[i, 1]:.2f}, {data[i, 2]:.2f}] -> BMU @ ({int(bmu_locations[i, 0])}, {int(bmu_locations[i, 1])})")

    # 6. Read back what the last epoch produced
    report = som_model.report()
    print(f"\nMatched input positions in map space: {report.input_positions[:3]} ...")

    q_error = som_model.quantization_error(data)
    print(f"\nQuantization Error on the full dataset: {q_error:.4f}")

    print("\n--- SOM Library Example Finished ---")

if __name__ == "__main__":
    run_som_example()
