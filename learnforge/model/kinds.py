"""
Layer kinds
===========
The closed set of layer kinds a network description may use. Kinds are
resolved once, when a network is configured, and every structural check
(output placement, convolutional/recurrent flags) dispatches on them.
"""

from __future__ import annotations

from enum import Enum


class LayerKind(str, Enum):
    """Tag identifying what a layer is, independent of its implementation."""

    DENSE = "dense"
    AUTOENCODER = "autoencoder"
    RBM = "rbm"
    CONVOLUTION = "convolution"
    SUBSAMPLING = "subsampling"
    GRAVES_LSTM = "graves_lstm"
    GRU = "gru"
    OUTPUT = "output"

    @classmethod
    def of(cls, layer) -> LayerKind:
        """
        Resolve the kind of anything that describes a layer.

        Accepts a LayerKind, its string value, or any object with a
        ``kind`` attribute (LayerConfig, layer modules).
        """
        if isinstance(layer, cls):
            return layer
        if isinstance(layer, str):
            return cls(layer)
        kind = getattr(layer, "kind", None)
        if kind is None:
            raise TypeError(f"Cannot determine layer kind of {layer!r}")
        return cls(kind)

    @property
    def is_pretrainable(self) -> bool:
        return self in (LayerKind.AUTOENCODER, LayerKind.RBM)

    @property
    def is_recurrent(self) -> bool:
        return self in (LayerKind.GRAVES_LSTM, LayerKind.GRU)


# Kinds the reference MultiLayerNetwork can actually build
BUILDABLE_KINDS = (LayerKind.DENSE, LayerKind.AUTOENCODER, LayerKind.OUTPUT)
