"""
LearnForge Layer Modules
=========================
The building blocks of the reference MultiLayerNetwork. Every layer is a
small nn.Module that carries its LayerKind tag, so structural checks can
run directly on a built network.

Layers:
    DenseLayer        — Linear + activation
    AutoEncoderLayer  — DenseLayer with a tied-weight decoder, pretrainable
                        by (optionally denoising) reconstruction
    OutputLayer       — DenseLayer that also owns the supervised loss

Architecture of an AutoEncoderLayer during pretraining:
    x → [corrupt] → Linear(W, b) → act → Linear(Wᵀ, b_visible) → x̂
    loss = MSE(x̂, x)

Usage:
    >>> layer = build_layer(LayerConfig(kind="dense", n_in=4, n_out=8))
    >>> out = layer(torch.randn(16, 4))     # (16, 8)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

import torch
import torch.nn as nn
import torch.nn.functional as F

from learnforge.model.kinds import BUILDABLE_KINDS, LayerKind

if TYPE_CHECKING:
    from learnforge.config import LayerConfig

logger = logging.getLogger(__name__)


_ACTIVATIONS: dict[str, Callable[[torch.Tensor], torch.Tensor]] = {
    "relu": torch.relu,
    "sigmoid": torch.sigmoid,
    "tanh": torch.tanh,
    "identity": lambda x: x,
    "softmax": lambda x: torch.softmax(x, dim=-1),
}


class DenseLayer(nn.Module):
    """
    Fully connected layer: activation(x @ Wᵀ + b).

    Parameters
    ----------
    n_in : int
        Number of inputs.
    n_out : int
        Number of units.
    activation : str
        Name of the activation function (see config.ACTIVATIONS).
    index : int
        Position of the layer in its network, used for logging.
    """

    kind = LayerKind.DENSE

    def __init__(
        self,
        n_in: int,
        n_out: int,
        activation: str = "relu",
        index: int = 0,
    ):
        super().__init__()

        if activation not in _ACTIVATIONS:
            raise ValueError(f"Unknown activation: '{activation}'")

        self.n_in = n_in
        self.n_out = n_out
        self.index = index
        self.activation_name = activation
        self.activation = _ACTIVATIONS[activation]
        self.linear = nn.Linear(n_in, n_out)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.activation(self.linear(x))

    @property
    def n_params(self) -> int:
        return sum(p.numel() for p in self.parameters())

    def extra_repr(self) -> str:
        return (
            f"kind={self.kind.value}, n_in={self.n_in}, n_out={self.n_out}, "
            f"activation={self.activation_name}"
        )


class AutoEncoderLayer(DenseLayer):
    """
    Dense layer that can be pretrained without labels.

    The decoder shares the encoder's weight matrix (transposed) and only
    adds a visible bias, so the parameter vector stays close to that of
    a plain dense layer.

    Parameters
    ----------
    corruption_level : float
        Fraction of inputs randomly zeroed before encoding while
        pretraining. 0.0 gives a plain autoencoder.
    """

    kind = LayerKind.AUTOENCODER

    def __init__(
        self,
        n_in: int,
        n_out: int,
        activation: str = "sigmoid",
        index: int = 0,
        corruption_level: float = 0.0,
    ):
        super().__init__(n_in, n_out, activation=activation, index=index)
        self.corruption_level = corruption_level
        self.visible_bias = nn.Parameter(torch.zeros(n_in))

    def reconstruct(self, x: torch.Tensor) -> torch.Tensor:
        hidden = self(x)
        return self.activation(
            F.linear(hidden, self.linear.weight.t(), self.visible_bias)
        )

    def pretrain_loss(self, x: torch.Tensor) -> torch.Tensor:
        """Reconstruction error of (a corrupted copy of) ``x``."""
        corrupted = x
        if self.corruption_level > 0:
            mask = torch.rand_like(x) >= self.corruption_level
            corrupted = x * mask
        return F.mse_loss(self.reconstruct(corrupted), x)


class OutputLayer(DenseLayer):
    """
    Terminal layer producing predictions and the supervised loss.

    Parameters
    ----------
    loss : str
        "cross_entropy" or "mse". Cross-entropy accepts labels either as
        class indices (shape ``(batch,)``) or as one-hot / probability rows
        (shape ``(batch, n_out)``).
    """

    kind = LayerKind.OUTPUT

    def __init__(
        self,
        n_in: int,
        n_out: int,
        activation: str = "softmax",
        index: int = 0,
        loss: str = "cross_entropy",
    ):
        super().__init__(n_in, n_out, activation=activation, index=index)
        if loss not in ("cross_entropy", "mse"):
            raise ValueError(f"Unknown loss: '{loss}'")
        self.loss = loss

    def compute_loss(self, x: torch.Tensor, labels: torch.Tensor) -> torch.Tensor:
        logits = self.linear(x)
        if self.loss == "mse":
            return F.mse_loss(self.activation(logits), labels.to(logits.dtype))
        # Probability rows vs. class indices
        if labels.dim() == logits.dim() and labels.is_floating_point():
            return F.cross_entropy(logits, labels.to(logits.dtype))
        return F.cross_entropy(logits, labels.long().reshape(-1))


def build_layer(config: LayerConfig, index: int = 0) -> DenseLayer:
    """
    Instantiate the layer module described by ``config``.

    Raises
    ------
    ValueError
        If the layer kind is descriptive only (convolution, recurrent, ...).
    """
    kind = LayerKind(config.kind)
    if kind not in BUILDABLE_KINDS:
        raise ValueError(
            f"Layer {index}: kind '{kind.value}' is not supported by "
            f"MultiLayerNetwork"
        )

    if kind is LayerKind.AUTOENCODER:
        layer = AutoEncoderLayer(
            config.n_in, config.n_out,
            activation=config.activation,
            index=index,
            corruption_level=config.corruption_level,
        )
    elif kind is LayerKind.OUTPUT:
        layer = OutputLayer(
            config.n_in, config.n_out,
            activation=config.activation,
            index=index,
            loss=config.loss,
        )
    else:
        layer = DenseLayer(
            config.n_in, config.n_out,
            activation=config.activation,
            index=index,
        )

    logger.debug(f"Built layer {index}: {layer.extra_repr()}")
    return layer
