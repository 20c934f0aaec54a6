import math
import unittest

import torch

from kohonen_mapper import (
    ConfigurationError,
    DimensionMismatchError,
    EngineStatus,
    InputSample,
    SomGrid,
    TrainingConfig,
    TrainingEngine,
    TrainingError,
    samples_from_vectors,
)


def random_samples(num_samples, dimension, seed):
    generator = torch.Generator().manual_seed(seed)
    return samples_from_vectors(torch.rand(num_samples, dimension, generator=generator, dtype=torch.float64))


class TestEngineLifecycle(unittest.TestCase):

    def setUp(self):
        self.grid = SomGrid.initialize(3, 4, dimension=2, seed=10)
        self.samples = random_samples(5, 2, seed=1)
        self.engine = TrainingEngine()

    def test_configure_sets_initial_state(self):
        state = self.engine.configure(self.grid, self.samples)
        self.assertEqual(self.engine.status, EngineStatus.UNINITIALIZED)
        # Diagonal of a 3x4 grid is 5
        self.assertEqual(state.initial_radius, 2.5)
        self.assertEqual(state.neighborhood_radius, 2.5)
        self.assertEqual(state.win_rate, 0.95)
        self.assertEqual(state.other_rate, 0.90)
        self.assertEqual(state.epoch, 0)
        self.assertFalse(state.converged)

    def test_run_epoch_before_configure_raises(self):
        with self.assertRaises(TrainingError):
            self.engine.run_epoch(self.grid, self.samples)

    def test_first_epoch_moves_to_training(self):
        self.engine.configure(self.grid, self.samples)
        state = self.engine.run_epoch(self.grid, self.samples)
        self.assertEqual(self.engine.status, EngineStatus.TRAINING)
        self.assertEqual(state.epoch, 1)

    def test_empty_inputs_raise_before_state_exists(self):
        with self.assertRaises(ConfigurationError):
            self.engine.configure(self.grid, [])
        self.assertIsNone(self.engine.training_state)

    def test_dimension_mismatch_raises(self):
        bad = self.samples + [InputSample([0.1, 0.2, 0.3])]
        with self.assertRaises(DimensionMismatchError):
            self.engine.configure(self.grid, bad)
        self.assertIsNone(self.engine.training_state)

        self.engine.configure(self.grid, self.samples)
        before = self.grid.weights()
        with self.assertRaises(DimensionMismatchError):
            self.engine.run_epoch(self.grid, bad)
        # Nothing was staged or committed
        self.assertTrue(torch.equal(before, self.grid.weights()))
        self.assertEqual(self.engine.training_state.epoch, 0)

    def test_grid_shape_change_raises(self):
        self.engine.configure(self.grid, self.samples)
        other = SomGrid.initialize(4, 4, dimension=2, seed=10)
        with self.assertRaises(TrainingError):
            self.engine.run_epoch(other, self.samples)

    def test_reset(self):
        self.engine.configure(self.grid, self.samples)
        self.engine.run_epoch(self.grid, self.samples)
        self.engine.reset()
        self.assertEqual(self.engine.status, EngineStatus.UNINITIALIZED)
        self.assertIsNone(self.engine.training_state)
        with self.assertRaises(TrainingError):
            self.engine.run_epoch(self.grid, self.samples)

    def test_training_state_is_a_copy(self):
        self.engine.configure(self.grid, self.samples)
        state = self.engine.training_state
        state.win_rate = 0.0
        self.assertEqual(self.engine.training_state.win_rate, 0.95)

    def test_matched_positions_are_set(self):
        self.engine.configure(self.grid, self.samples)
        for sample in self.samples:
            self.assertIsNone(sample.matched_position)
        self.engine.run_epoch(self.grid, self.samples)
        for sample in self.samples:
            self.assertEqual(sample.matched_position, self.grid.position(*sample.matched_node))


class TestEngineDecay(unittest.TestCase):

    def test_decay_recurrence(self):
        config = TrainingConfig(win_rate=0.9, other_rate=0.8, win_rate_decay=0.99,
                                other_rate_decay=0.98, radius_decay=0.95, radius_factor=0.5)
        grid = SomGrid.initialize(6, 8, dimension=2, seed=3)
        samples = random_samples(4, 2, seed=2)
        engine = TrainingEngine(config)
        engine.configure(grid, samples)

        win, other = 0.9, 0.8
        initial_radius = math.sqrt(6 ** 2 + 8 ** 2) * 0.5
        for epoch in range(4):
            win *= 1 - epoch * (1 - 0.99)
            other *= 1 - epoch * (1 - 0.98)
            radius = initial_radius * (1 - epoch * (1 - 0.95))
            state = engine.run_epoch(grid, samples)
            self.assertEqual(state.win_rate, win)
            self.assertEqual(state.other_rate, other)
            self.assertEqual(state.neighborhood_radius, radius)
            self.assertEqual(state.epoch, epoch + 1)

    def test_monotonic_decay_and_convergence(self):
        grid = SomGrid.initialize(5, 5, dimension=3, seed=5)
        samples = random_samples(3, 3, seed=6)
        engine = TrainingEngine()
        engine.configure(grid, samples)

        previous = engine.training_state.win_rate
        for _ in range(200):
            state = engine.run_epoch(grid, samples)
            self.assertLessEqual(state.win_rate, previous)
            self.assertEqual(state.converged, state.win_rate < 0.5)
            previous = state.win_rate
            if state.converged:
                break
        self.assertTrue(engine.converged)
        self.assertEqual(engine.status, EngineStatus.CONVERGED)

        # Converged is terminal: further epochs change nothing
        final_weights = grid.weights()
        again = engine.run_epoch(grid, samples)
        self.assertEqual(again, state)
        self.assertTrue(torch.equal(final_weights, grid.weights()))

    def test_convergence_is_logged(self):
        grid = SomGrid.initialize(2, 2, dimension=1, seed=5)
        samples = random_samples(2, 1, seed=6)
        engine = TrainingEngine(TrainingConfig(win_rate=0.6, win_rate_decay=0.5))
        engine.configure(grid, samples)
        with self.assertLogs('kohonen_mapper.engine', level='INFO') as logs:
            engine.train(grid, samples)
        self.assertTrue(any("Converged" in line for line in logs.output))


class TestEngineScenario(unittest.TestCase):

    def test_single_input_two_by_two(self):
        grid = SomGrid.from_weights(torch.tensor([[[0.2], [0.4]], [[0.6], [0.8]]], dtype=torch.float64))
        samples = samples_from_vectors([[1.0]])
        engine = TrainingEngine(TrainingConfig(win_rate=0.9, other_rate=0.5, radius_factor=1.0))
        engine.configure(grid, samples)
        state = engine.run_epoch(grid, samples)

        weights = grid.weights()[:, :, 0]
        self.assertAlmostEqual(weights[1, 1].item(), 0.8 + 0.9 * (1.0 - 0.8), places=12)
        self.assertAlmostEqual(weights[0, 1].item(), 0.4 + 0.5 * (1.0 - 0.4), places=12)
        self.assertAlmostEqual(weights[1, 0].item(), 0.6 + 0.5 * (1.0 - 0.6), places=12)
        self.assertAlmostEqual(weights[0, 0].item(), 0.2 + 0.5 / math.sqrt(2) * (1.0 - 0.2), places=12)

        # The first decay multiplier is 1
        self.assertEqual(state.win_rate, 0.9)
        self.assertEqual(state.neighborhood_radius, math.sqrt(8))
        self.assertEqual(samples[0].matched_node, (1, 1))
        self.assertEqual(samples[0].matched_position, (1.0, 1.0, 0.0))

    def test_determinism(self):
        runs = []
        for _ in range(2):
            grid = SomGrid.initialize(5, 5, dimension=3, seed=123)
            samples = random_samples(8, 3, seed=77)
            engine = TrainingEngine(TrainingConfig(seed=123))
            engine.configure(grid, samples)
            history = []
            for _ in range(5):
                engine.run_epoch(grid, samples)
                history.append(grid.weights())
            runs.append(history)
        for first, second in zip(*runs):
            self.assertTrue(torch.equal(first, second))


class TestEngineTrainLoop(unittest.TestCase):

    def setUp(self):
        self.grid = SomGrid.initialize(3, 3, dimension=2, seed=4)
        self.samples = random_samples(3, 2, seed=8)

    def test_train_until_converged(self):
        engine = TrainingEngine()
        engine.configure(self.grid, self.samples)
        state = engine.train(self.grid, self.samples)
        self.assertTrue(state.converged)
        self.assertLess(state.win_rate, 0.5)

    def test_max_epochs(self):
        engine = TrainingEngine()
        engine.configure(self.grid, self.samples)
        state = engine.train(self.grid, self.samples, max_epochs=3)
        self.assertEqual(state.epoch, 3)
        self.assertFalse(state.converged)

    def test_should_stop(self):
        engine = TrainingEngine()
        engine.configure(self.grid, self.samples)
        state = engine.train(self.grid, self.samples, should_stop=lambda s: s.epoch >= 2)
        self.assertEqual(state.epoch, 2)

    def test_non_converging_config_needs_max_epochs(self):
        engine = TrainingEngine(TrainingConfig(win_rate_decay=1.0))
        engine.configure(self.grid, self.samples)
        with self.assertRaises(ConfigurationError):
            engine.train(self.grid, self.samples)
        state = engine.train(self.grid, self.samples, max_epochs=2)
        self.assertEqual(state.win_rate, 0.95)

    def test_report(self):
        engine = TrainingEngine()
        engine.configure(self.grid, self.samples)
        engine.run_epoch(self.grid, self.samples)
        report = engine.report(self.grid, self.samples)
        self.assertEqual(report.epoch, 1)
        self.assertFalse(report.converged)
        self.assertEqual(report.node_positions.shape, (3, 3, 3))
        self.assertTrue(torch.equal(report.synaptic_weights, self.grid.weights()))
        self.assertEqual(report.input_positions, [s.matched_position for s in self.samples])
        self.assertEqual(report.neighborhood_radius, engine.training_state.neighborhood_radius)


if __name__ == '__main__':
    unittest.main()
