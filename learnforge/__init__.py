"""
LearnForge
==========
Epoch-level training orchestration for layered neural networks.

This package provides a complete framework for:
    1. Validating a network description and its input table before training
    2. Driving one of three training regimes epoch by epoch
       (layer-wise pretraining, finetuning, full backpropagation)
    3. Stopping cooperatively between batches, or aborting a whole run
    4. Recording per-epoch score history and publishing progress snapshots
    5. Transplanting weights and optimizer state from a previously trained
       network when continuing (uptraining) a run

Quick Start:
    >>> from learnforge.config import LearnForgeConfig
    >>> from learnforge.model import MultiLayerNetwork
    >>> from learnforge.training import LearnerController, ExecutionContext
    >>> config = LearnForgeConfig.for_smoke_test()
    >>> net = MultiLayerNetwork(config.network)
    >>> learner = LearnerController()
    >>> learner.train(net, data, "backprop", max_epochs=3, context=ExecutionContext())

Subpackages:
    - learnforge.data     — Batches, restartable iterators, table descriptions
    - learnforge.model    — Layer kinds, layer modules, reference network
    - learnforge.training — Monitor, regimes, state transfer, learner controller
"""

__version__ = "0.1.0"
