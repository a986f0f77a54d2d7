"""
learnforge.model — Network Description & Reference Network
============================================================
This subpackage defines what a network looks like to the learner.

    ┌─ ModelSpec ─────────────────────────────────────┐
    │  static description: layer kinds, network types │
    └─────────────────────────────────────────────────┘
                 │ configured into
                 ▼
    ┌─ MultiLayerNetwork ─────────────────────────────┐
    │  Layer 0: AutoEncoderLayer  (pretrainable)      │
    │  Layer 1: DenseLayer                            │
    │  Layer 2: OutputLayer       (owns the loss)     │
    │  Updater: torch optimizer (transferable state)  │
    └─────────────────────────────────────────────────┘

Components:
    - kinds.py       — LayerKind enum (closed set of layer kinds)
    - layers.py      — Dense / AutoEncoder / Output layer modules
    - network.py     — Network protocol + MultiLayerNetwork
    - model_spec.py  — ModelSpec static description and sanity checks
"""

from learnforge.model.kinds import LayerKind
from learnforge.model.layers import (
    AutoEncoderLayer,
    DenseLayer,
    OutputLayer,
    build_layer,
)
from learnforge.model.model_spec import ModelSpec
from learnforge.model.network import MultiLayerNetwork, Network
