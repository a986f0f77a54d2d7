#!/usr/bin/env python3
"""
Tests for LearnForge configuration, network model, and data pipeline.

Run all tests:
    python -m pytest tests/ -v --tb=short

Run a specific test file:
    python -m pytest tests/test_learnforge.py -v
"""

import sys
from pathlib import Path

import numpy as np
import pytest
import torch

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


# =============================================================================
# Config Tests
# =============================================================================

class TestConfig:
    """Tests for the configuration system."""

    def test_default_config_loads(self):
        """Default config should validate without errors."""
        from learnforge.config import LearnForgeConfig
        config = LearnForgeConfig()
        config.validate()
        assert config.network.n_layers == 3

    def test_smoke_test_config(self):
        """Smoke test config should create a valid minimal configuration."""
        from learnforge.config import LearnForgeConfig
        config = LearnForgeConfig.for_smoke_test()
        config.validate()
        assert config.network.n_in == 4
        assert config.network.n_out == 3
        assert config.training.device == "cpu"

    def test_layer_sizes_must_chain(self):
        """Each layer's n_in must equal the previous layer's n_out."""
        from learnforge.config import LayerConfig, NetworkConfig
        config = NetworkConfig(layers=[
            LayerConfig(kind="dense", n_in=4, n_out=8),
            LayerConfig(kind="output", n_in=6, n_out=3),
        ])
        with pytest.raises(ValueError, match="n_in=6"):
            config.validate()

    def test_unknown_layer_kind(self):
        from learnforge.config import LayerConfig
        with pytest.raises(ValueError, match="unknown kind"):
            LayerConfig(kind="transformer").validate()

    def test_descriptive_kind_not_buildable(self):
        """Convolution layers describe fine but cannot be built."""
        from learnforge.config import LayerConfig, NetworkConfig
        config = NetworkConfig(layers=[
            LayerConfig(kind="convolution", n_in=4, n_out=4),
            LayerConfig(kind="output", n_in=4, n_out=2),
        ])
        config.validate()
        with pytest.raises(ValueError, match="cannot be built"):
            config.validate(buildable=True)

    def test_unknown_regime(self):
        from learnforge.config import TrainingConfig
        with pytest.raises(ValueError, match="regime"):
            TrainingConfig(regime="evolve").validate()

    def test_yaml_round_trip(self, tmp_path):
        """Config should save to YAML and load back with the same layers."""
        from learnforge.config import LearnForgeConfig
        config = LearnForgeConfig.for_smoke_test()

        yaml_path = tmp_path / "test_config.yaml"
        config.to_yaml(yaml_path)

        loaded = LearnForgeConfig.from_yaml(yaml_path)
        assert loaded.network.layer_kinds == config.network.layer_kinds
        assert loaded.network.layers[0].corruption_level == pytest.approx(0.1)
        assert loaded.training.regime == config.training.regime

    def test_missing_yaml(self, tmp_path):
        from learnforge.config import LearnForgeConfig
        with pytest.raises(FileNotFoundError):
            LearnForgeConfig.from_yaml(tmp_path / "nope.yaml")

    def test_shipped_default_yaml(self):
        """configs/default.yaml should load and validate."""
        from learnforge.config import LearnForgeConfig
        path = Path(__file__).resolve().parent.parent / "configs" / "default.yaml"
        config = LearnForgeConfig.from_yaml(path)
        assert config.network.layers[-1].kind == "output"


# =============================================================================
# Layer Kind & Model Spec Tests
# =============================================================================

class TestLayerKind:
    """Tests for layer kind resolution."""

    def test_of_accepts_all_forms(self):
        from learnforge.config import LayerConfig
        from learnforge.model.kinds import LayerKind
        from learnforge.model.layers import OutputLayer

        assert LayerKind.of(LayerKind.GRU) is LayerKind.GRU
        assert LayerKind.of("output") is LayerKind.OUTPUT
        assert LayerKind.of(LayerConfig(kind="dense")) is LayerKind.DENSE
        assert LayerKind.of(OutputLayer(4, 2)) is LayerKind.OUTPUT

    def test_of_rejects_unknown(self):
        from learnforge.model.kinds import LayerKind
        with pytest.raises(TypeError):
            LayerKind.of(object())

    def test_recurrent_kinds(self):
        from learnforge.model.kinds import LayerKind
        assert LayerKind.GRAVES_LSTM.is_recurrent
        assert LayerKind.GRU.is_recurrent
        assert not LayerKind.DENSE.is_recurrent


class TestModelSpec:
    """Tests for static model descriptions."""

    def test_flags(self):
        from learnforge.model import LayerKind, ModelSpec
        spec = ModelSpec(layer_kinds=(LayerKind.CONVOLUTION, LayerKind.GRU, LayerKind.OUTPUT))
        assert spec.contains_convolution
        assert spec.contains_recurrent

    def test_valid_spec_has_no_warnings(self):
        from learnforge.config import NetworkConfig
        from learnforge.model import ModelSpec
        assert ModelSpec.from_network_config(NetworkConfig()).validate() == []

    def test_misplaced_output_warns(self):
        from learnforge.model import LayerKind, ModelSpec
        spec = ModelSpec(layer_kinds=(LayerKind.OUTPUT, LayerKind.DENSE))
        warnings = spec.validate()
        assert any("must be the last layer" in w for w in warnings)

    def test_empty_spec_warns(self):
        from learnforge.model import ModelSpec
        assert ModelSpec().validate() == ["Model spec does not contain any layers"]


# =============================================================================
# Network Tests
# =============================================================================

def _blobs(n_per_class=60, seed=0):
    rng = np.random.default_rng(seed)
    centers = np.array([[4.0, 0, 0, 0], [0, 4.0, 0, 0], [0, 0, 4.0, 0]])
    x = np.concatenate([rng.normal(c, 0.5, size=(n_per_class, 4)) for c in centers])
    y = np.repeat(np.arange(3), n_per_class)
    return x.astype(np.float32), y


class TestLayers:
    """Tests for the individual layer modules."""

    def test_dense_forward_shape(self):
        from learnforge.model.layers import DenseLayer
        layer = DenseLayer(4, 8)
        assert layer(torch.randn(5, 4)).shape == (5, 8)

    def test_autoencoder_reconstructs_input_shape(self):
        from learnforge.model.layers import AutoEncoderLayer
        layer = AutoEncoderLayer(4, 8, corruption_level=0.2)
        x = torch.rand(5, 4)
        assert layer.reconstruct(x).shape == x.shape
        assert layer.pretrain_loss(x).dim() == 0

    def test_output_loss_accepts_indices_and_one_hot(self):
        from learnforge.model.layers import OutputLayer
        layer = OutputLayer(4, 3)
        x = torch.randn(6, 4)
        idx = torch.tensor([0, 1, 2, 0, 1, 2])
        one_hot = torch.nn.functional.one_hot(idx, 3).float()
        assert torch.allclose(layer.compute_loss(x, idx), layer.compute_loss(x, one_hot))

    def test_build_rejects_descriptive_kind(self):
        from learnforge.config import LayerConfig
        from learnforge.model.layers import build_layer
        with pytest.raises(ValueError, match="not supported"):
            build_layer(LayerConfig(kind="gru", n_in=4, n_out=4))


class TestMultiLayerNetwork:
    """Tests for the reference network."""

    def test_forward_shape(self):
        from learnforge.config import LearnForgeConfig
        from learnforge.model import MultiLayerNetwork
        net = MultiLayerNetwork(LearnForgeConfig.for_smoke_test().network)
        assert net(torch.randn(7, 4)).shape == (7, 3)
        assert net.n_layers == 3

    def test_layer_params_round_trip(self):
        """get_layer_params returns a copy; set_layer_params writes it back."""
        from learnforge.config import LearnForgeConfig
        from learnforge.model import MultiLayerNetwork
        net = MultiLayerNetwork(LearnForgeConfig.for_smoke_test().network)

        params = net.get_layer_params(1)
        params.zero_()
        assert net.get_layer_params(1).abs().sum() > 0

        net.set_layer_params(1, params)
        assert net.get_layer_params(1).abs().sum() == 0

    def test_set_layer_params_size_mismatch(self):
        from learnforge.config import LearnForgeConfig
        from learnforge.model import MultiLayerNetwork
        net = MultiLayerNetwork(LearnForgeConfig.for_smoke_test().network)
        with pytest.raises(ValueError, match="does not fit"):
            net.set_layer_params(0, torch.zeros(3))

    def test_updater_state_empty_before_training(self):
        from learnforge.config import LearnForgeConfig
        from learnforge.model import MultiLayerNetwork
        net = MultiLayerNetwork(LearnForgeConfig.for_smoke_test().network)
        assert net.updater_state() is None
        assert net.score() == 0.0

    def test_pretrain_layer_skips_dense(self):
        """Only autoencoder layers change during pretraining."""
        from learnforge.config import LearnForgeConfig
        from learnforge.model import MultiLayerNetwork
        net = MultiLayerNetwork(LearnForgeConfig.for_smoke_test().network)
        x = torch.rand(8, 4)

        before = [net.get_layer_params(i) for i in range(3)]
        net.pretrain_layer(1, x)
        assert all(torch.equal(b, net.get_layer_params(i)) for i, b in enumerate(before))

        net.pretrain_layer(0, x)
        assert not torch.equal(before[0], net.get_layer_params(0))
        assert net.score() > 0

    def test_pretrain_layer_index_checked(self):
        from learnforge.config import LearnForgeConfig
        from learnforge.model import MultiLayerNetwork
        net = MultiLayerNetwork(LearnForgeConfig.for_smoke_test().network)
        with pytest.raises(IndexError):
            net.pretrain_layer(3, torch.rand(2, 4))

    def test_finetune_only_updates_output_layer(self):
        from learnforge.config import LearnForgeConfig
        from learnforge.model import MultiLayerNetwork
        net = MultiLayerNetwork(LearnForgeConfig.for_smoke_test().network)
        before = [net.get_layer_params(i) for i in range(3)]

        net.set_input(torch.rand(8, 4))
        net.set_labels(torch.randint(0, 3, (8,)))
        net.finetune()

        assert torch.equal(before[0], net.get_layer_params(0))
        assert torch.equal(before[1], net.get_layer_params(1))
        assert not torch.equal(before[2], net.get_layer_params(2))
        assert net.updater_state() is not None

    def test_finetune_requires_input(self):
        from learnforge.config import LearnForgeConfig
        from learnforge.model import MultiLayerNetwork
        net = MultiLayerNetwork(LearnForgeConfig.for_smoke_test().network)
        with pytest.raises(ValueError, match="set_input"):
            net.finetune()

    def test_fit_rejects_unlabeled_batch(self):
        from learnforge.config import LearnForgeConfig
        from learnforge.data import DataSet
        from learnforge.model import MultiLayerNetwork
        net = MultiLayerNetwork(LearnForgeConfig.for_smoke_test().network)
        with pytest.raises(ValueError):
            net.fit(DataSet(torch.rand(4, 4), None))

    def test_backprop_learns_blobs(self):
        """Score after many epochs should be well below the first epoch's."""
        from learnforge.config import LayerConfig, NetworkConfig
        from learnforge.data import TensorDataSetIterator
        from learnforge.model import MultiLayerNetwork
        from learnforge.training import ExecutionContext, LearnerController

        config = NetworkConfig(
            layers=[
                LayerConfig(kind="dense", n_in=4, n_out=16, activation="relu"),
                LayerConfig(kind="output", n_in=16, n_out=3, activation="softmax"),
            ],
            learning_rate=0.05,
            seed=0,
        )
        net = MultiLayerNetwork(config)
        x, y = _blobs()
        data = TensorDataSetIterator.from_numpy(x, y, batch_size=180)

        learner = LearnerController()
        learner.train(net, data, "backprop", max_epochs=40, context=ExecutionContext())

        history = learner.get_history()
        assert len(history) == 40
        assert history[-1].score < history[0].score * 0.5


# =============================================================================
# Data Tests
# =============================================================================

class TestIterators:
    """Tests for restartable batch iterators."""

    def test_tensor_iterator_batches(self):
        """10 examples with batch_size 4 → batches of 4, 4, 2."""
        from learnforge.data import TensorDataSetIterator
        data = TensorDataSetIterator(torch.arange(20.).reshape(10, 2), torch.arange(10), batch_size=4)
        sizes = [len(b) for b in data]
        assert sizes == [4, 4, 2]
        assert len(data) == 3
        assert not data.has_next()

        data.reset()
        assert data.has_next()
        assert torch.equal(data.next().labels, torch.tensor([0, 1, 2, 3]))

    def test_shuffle_keeps_all_examples(self):
        from learnforge.data import TensorDataSetIterator
        data = TensorDataSetIterator(torch.arange(10.).reshape(10, 1), batch_size=3, shuffle=True, seed=1)
        seen = torch.cat([b.features for b in data]).flatten().sort().values
        assert torch.equal(seen, torch.arange(10.))

        data.reset()
        assert all(b.labels is None for b in data)

    def test_label_count_mismatch(self):
        from learnforge.data import TensorDataSetIterator
        with pytest.raises(ValueError, match="same number"):
            TensorDataSetIterator(torch.zeros(5, 2), torch.zeros(4))

    def test_from_numpy(self):
        from learnforge.data import TensorDataSetIterator
        x, y = _blobs(n_per_class=5)
        data = TensorDataSetIterator.from_numpy(x, y, batch_size=5)
        batch = data.next()
        assert batch.features.dtype == torch.float32
        assert batch.is_supervised

    def test_next_past_end_raises(self):
        from learnforge.data import DataSet, ListDataSetIterator
        data = ListDataSetIterator([DataSet(torch.zeros(1, 2))])
        data.next()
        with pytest.raises(StopIteration):
            data.next()

    def test_dataloader_iterator_peeks_without_consuming(self):
        from torch.utils.data import DataLoader, TensorDataset
        from learnforge.data import DataLoaderIterator
        loader = DataLoader(TensorDataset(torch.zeros(6, 2), torch.arange(6)), batch_size=2)
        data = DataLoaderIterator(loader)

        assert data.has_next()
        assert data.has_next()
        assert torch.equal(data.next().labels, torch.tensor([0, 1]))
        assert len(list(data)) == 2

        data.reset()
        assert len(list(data)) == 3


class TestTableSpec:
    """Tests for input table descriptions and column selection."""

    def test_contains_image(self):
        from learnforge.data import TableSpec
        assert TableSpec.from_dict({"a": "double", "img": "image"}).contains_image()
        assert not TableSpec.from_dict({"a": "double"}).contains_image()

    def test_valid_selection(self):
        from learnforge.data import TableSpec, name_type_list, validate_column_selection
        spec = TableSpec.from_dict({"a": "double", "b": "int", "c": "string"})
        validate_column_selection(spec, ["b", "a"])
        assert name_type_list(["b", "a"], spec) == [("b", "int"), ("a", "double")]

    @pytest.mark.parametrize("selected, message", [
        ([], "No columns"),
        (["zzz"], "not contained"),
        (["c"], "not supported"),
        (["a", "a"], "twice"),
    ])
    def test_invalid_selection(self, selected, message):
        from learnforge.data import TableSpec, validate_column_selection
        from learnforge.errors import ConfigurationDefect, InvalidSettingsError
        spec = TableSpec.from_dict({"a": "double", "c": "string"})
        with pytest.raises(InvalidSettingsError, match=message) as excinfo:
            validate_column_selection(spec, selected)
        assert isinstance(excinfo.value, ConfigurationDefect)


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
