"""
LearnForge Configuration System
================================
Centralized configuration for the network description and the training
run, using Python dataclasses. Every hyperparameter and switch lives here.

Usage:
    # Load from YAML file:
    >>> config = LearnForgeConfig.from_yaml("configs/default.yaml")

    # Create programmatically:
    >>> config = LearnForgeConfig(
    ...     network=NetworkConfig(layers=[
    ...         LayerConfig(kind="dense", n_in=4, n_out=8),
    ...         LayerConfig(kind="output", n_in=8, n_out=3),
    ...     ]),
    ...     training=TrainingConfig(epochs=20, regime="backprop"),
    ... )

    # Save to YAML:
    >>> config.to_yaml("configs/my_experiment.yaml")

    # Access nested values:
    >>> config.network.n_layers     # 2
    >>> config.training.regime      # "backprop"
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Literal

import torch
import yaml

from learnforge.model.kinds import BUILDABLE_KINDS, LayerKind

logger = logging.getLogger(__name__)

ACTIVATIONS = ("relu", "sigmoid", "tanh", "identity", "softmax")
LOSSES = ("cross_entropy", "mse")
REGIMES = ("pretrain", "finetune", "backprop")


# =============================================================================
# Layer Configuration
# =============================================================================

@dataclass
class LayerConfig:
    """
    Description of one layer of the network.

    Parameters
    ----------
    kind : str
        One of the LayerKind values ("dense", "autoencoder", "output", ...).
        Only dense, autoencoder and output layers can be built by the
        reference network; the other kinds are accepted in descriptions
        so that structural checks can run on them.

    n_in : int
        Number of inputs to the layer. Must equal the previous layer's n_out.

    n_out : int
        Number of units in the layer.

    activation : str
        Activation applied to the layer output. Output layers trained with
        cross-entropy ignore this and emit raw logits during training.

    loss : str
        Loss of an output layer: "cross_entropy" (labels as class indices or
        one-hot rows) or "mse". Ignored for other kinds.

    corruption_level : float
        Fraction of inputs zeroed while pretraining an autoencoder layer
        (denoising). 0.0 disables corruption.
    """
    kind: str = "dense"
    n_in: int = 4
    n_out: int = 4
    activation: str = "relu"
    loss: str = "cross_entropy"
    corruption_level: float = 0.0

    @property
    def layer_kind(self) -> LayerKind:
        return LayerKind(self.kind)

    def validate(self, index: int = 0) -> None:
        """
        Check that this layer description is usable.

        Raises
        ------
        ValueError
            If the kind, sizes, activation or loss are invalid.
        """
        try:
            LayerKind(self.kind)
        except ValueError:
            raise ValueError(
                f"Layer {index}: unknown kind '{self.kind}'. "
                f"Choose from: {', '.join(k.value for k in LayerKind)}"
            ) from None
        if self.n_in <= 0 or self.n_out <= 0:
            raise ValueError(
                f"Layer {index}: n_in and n_out must be positive, "
                f"got n_in={self.n_in}, n_out={self.n_out}"
            )
        if self.activation not in ACTIVATIONS:
            raise ValueError(
                f"Layer {index}: unknown activation '{self.activation}'. "
                f"Choose from: {', '.join(ACTIVATIONS)}"
            )
        if self.loss not in LOSSES:
            raise ValueError(
                f"Layer {index}: unknown loss '{self.loss}'. "
                f"Choose from: {', '.join(LOSSES)}"
            )
        if not 0.0 <= self.corruption_level < 1.0:
            raise ValueError(
                f"Layer {index}: corruption_level must be in [0, 1), "
                f"got {self.corruption_level}"
            )


def _default_layers() -> list[LayerConfig]:
    return [
        LayerConfig(kind="autoencoder", n_in=4, n_out=16, activation="sigmoid"),
        LayerConfig(kind="dense", n_in=16, n_out=16, activation="relu"),
        LayerConfig(kind="output", n_in=16, n_out=3, activation="softmax"),
    ]


# =============================================================================
# Network Configuration
# =============================================================================

@dataclass
class NetworkConfig:
    """
    Architecture and optimizer settings of the network being trained.

    Parameters
    ----------
    layers : list[LayerConfig]
        Layers in training order. The output layer, if any, is expected
        to be the last one.

    learning_rate : float
        Step size of the updater used by fit() and finetune().

    pretrain_learning_rate : float
        Step size of the per-layer optimizers used by pretrain_layer().

    updater : str
        "sgd" or "adam". The updater's state (momentum, moment estimates)
        is what transfer_updater() moves between networks.

    momentum : float
        Momentum of the SGD updater. Ignored for Adam.

    pretrain : bool
        Whether fit() runs layer-wise pretraining on each batch before the
        supervised step. The backprop regime always switches this off for
        the duration of an epoch.

    seed : int
        Seed for parameter initialization.
    """
    layers: list[LayerConfig] = field(default_factory=_default_layers)
    learning_rate: float = 1e-2
    pretrain_learning_rate: float = 1e-2
    updater: Literal["sgd", "adam"] = "sgd"
    momentum: float = 0.9
    pretrain: bool = False
    seed: int = 42

    @property
    def n_layers(self) -> int:
        return len(self.layers)

    @property
    def n_in(self) -> int:
        return self.layers[0].n_in

    @property
    def n_out(self) -> int:
        return self.layers[-1].n_out

    @property
    def layer_kinds(self) -> list[LayerKind]:
        return [layer.layer_kind for layer in self.layers]

    def validate(self, buildable: bool = False) -> None:
        """
        Validate the network description.

        Parameters
        ----------
        buildable : bool
            Also require every layer kind to be one the reference
            MultiLayerNetwork can build.

        Raises
        ------
        ValueError
            If the description is empty, inconsistent, or uses unknown values.
        """
        if not self.layers:
            raise ValueError("Network must have at least one layer")
        for i, layer in enumerate(self.layers):
            layer.validate(i)
            if buildable and layer.layer_kind not in BUILDABLE_KINDS:
                raise ValueError(
                    f"Layer {i}: kind '{layer.kind}' cannot be built. "
                    f"Buildable kinds: {', '.join(k.value for k in BUILDABLE_KINDS)}"
                )
        for i in range(1, len(self.layers)):
            if self.layers[i].n_in != self.layers[i - 1].n_out:
                raise ValueError(
                    f"Layer {i} expects n_in={self.layers[i].n_in} but layer "
                    f"{i - 1} produces n_out={self.layers[i - 1].n_out}"
                )
        if self.learning_rate <= 0 or self.pretrain_learning_rate <= 0:
            raise ValueError(
                f"learning rates must be positive, got "
                f"{self.learning_rate} / {self.pretrain_learning_rate}"
            )
        if self.updater not in ("sgd", "adam"):
            raise ValueError(
                f"Unknown updater: '{self.updater}'. Choose from: sgd, adam"
            )


# =============================================================================
# Training Configuration
# =============================================================================

@dataclass
class TrainingConfig:
    """
    Settings of a training run.

    Parameters
    ----------
    epochs : int
        Maximum number of epochs. A stop request or cancellation may end
        the run earlier.

    regime : str
        "pretrain", "finetune" or "backprop".

    batch_size : int
        Number of examples per batch produced by the data iterator.

    shuffle : bool
        Whether the iterator reshuffles on every reset.

    transfer_updater : bool
        When continuing from a previous network, also copy its optimizer
        state (not only its weights).

    abort_remaining_layers_on_stop : bool
        Pretrain regime only: on a stop request, skip the layers after the
        one being pretrained instead of visiting them.

    seed : int
        Random seed for data shuffling.

    device : str
        "auto", "cpu", "mps" or "cuda".

    show_progress : bool
        Mirror progress messages to a tqdm bar on the console.
    """
    epochs: int = 10
    regime: Literal["pretrain", "finetune", "backprop"] = "backprop"
    batch_size: int = 32
    shuffle: bool = False
    transfer_updater: bool = True
    abort_remaining_layers_on_stop: bool = False
    seed: int = 42
    device: str = "auto"
    show_progress: bool = False

    def validate(self) -> None:
        """Validate training parameters."""
        if self.epochs < 1:
            raise ValueError(f"epochs must be >= 1, got {self.epochs}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.regime not in REGIMES:
            raise ValueError(
                f"Unknown regime: '{self.regime}'. "
                f"Choose from: {', '.join(REGIMES)}"
            )

    def resolve_device(self) -> torch.device:
        """
        Auto-detect the best available device.

        Priority: CUDA > MPS (Apple Silicon) > CPU
        """
        if self.device != "auto":
            return torch.device(self.device)

        if torch.cuda.is_available():
            logger.info("Using CUDA device (GPU detected)")
            return torch.device("cuda")
        elif hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
            logger.info("Using MPS device (Apple Silicon detected)")
            return torch.device("mps")
        else:
            logger.info("Using CPU device")
            return torch.device("cpu")


# =============================================================================
# Master Configuration
# =============================================================================

@dataclass
class LearnForgeConfig:
    """
    Master configuration combining the network and training sections.

    Usage:
        >>> config = LearnForgeConfig.from_yaml("configs/default.yaml")
        >>> config = LearnForgeConfig()
        >>> config.validate()
        >>> config.to_yaml("configs/my_experiment.yaml")
    """
    network: NetworkConfig = field(default_factory=NetworkConfig)
    training: TrainingConfig = field(default_factory=TrainingConfig)

    def validate(self) -> None:
        """
        Validate both sections.

        Raises
        ------
        ValueError
            If any parameter is invalid.
        """
        self.network.validate(buildable=True)
        self.training.validate()

        logger.info(
            f"Config validated: {self.network.n_layers} layers "
            f"({', '.join(k.value for k in self.network.layer_kinds)}), "
            f"regime={self.training.regime}, epochs={self.training.epochs}"
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> LearnForgeConfig:
        """
        Load configuration from a YAML file.

        Parameters
        ----------
        path : str or Path
            Path to the YAML configuration file.

        Returns
        -------
        LearnForgeConfig
            Loaded and validated configuration.

        Raises
        ------
        FileNotFoundError
            If the YAML file does not exist.
        yaml.YAMLError
            If the YAML file is malformed.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(
                f"Config file not found: {path}. "
                f"Create one from configs/default.yaml as a template."
            )

        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)

        if raw is None:
            raise ValueError(f"Config file is empty: {path}")

        network_raw = dict(raw.get("network", {}))
        if "layers" in network_raw:
            network_raw["layers"] = [
                LayerConfig(**layer) for layer in network_raw["layers"]
            ]

        config = cls(
            network=NetworkConfig(**network_raw),
            training=TrainingConfig(**raw.get("training", {})),
        )

        config.validate()
        return config

    def to_yaml(self, path: str | Path) -> None:
        """
        Save configuration to a YAML file, creating parent directories.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.to_dict(),
                f,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )

        logger.info(f"Config saved to {path}")

    def to_dict(self) -> dict:
        """Convert to nested dictionary."""
        return asdict(self)

    @classmethod
    def for_smoke_test(cls) -> LearnForgeConfig:
        """
        Create a minimal configuration for quick smoke testing.

        Returns
        -------
        LearnForgeConfig
            A tiny network and a two-epoch CPU run.
        """
        return cls(
            network=NetworkConfig(
                layers=[
                    LayerConfig(kind="autoencoder", n_in=4, n_out=8,
                                activation="sigmoid", corruption_level=0.1),
                    LayerConfig(kind="dense", n_in=8, n_out=8, activation="relu"),
                    LayerConfig(kind="output", n_in=8, n_out=3,
                                activation="softmax", loss="cross_entropy"),
                ],
                learning_rate=5e-2,
                pretrain_learning_rate=5e-2,
                updater="sgd",
                pretrain=True,
                seed=7,
            ),
            training=TrainingConfig(
                epochs=2,
                regime="backprop",
                batch_size=8,
                shuffle=False,
                seed=7,
                device="cpu",
            ),
        )

    def __repr__(self) -> str:
        """Pretty-print the configuration."""
        lines = [
            "LearnForgeConfig(",
            f"  Network:  {' -> '.join(k.value for k in self.network.layer_kinds)} "
            f"({self.network.n_in} in, {self.network.n_out} out)",
            f"  Updater:  {self.network.updater}, lr={self.network.learning_rate}, "
            f"pretrain={self.network.pretrain}",
            f"  Training: regime={self.training.regime}, "
            f"epochs={self.training.epochs}, batch_size={self.training.batch_size}",
            f"  Device:   {self.training.device}",
            ")",
        ]
        return "\n".join(lines)
