"""
LearnForge Epoch Regimes
=========================
One epoch of each of the three training regimes. These functions are the
inner loops of the learner; the LearnerController calls one of them per
epoch and handles score, status and history around it.

The Three Regimes:
    pretrain   for each layer i:
                   for each batch: network.pretrain_layer(i, batch.features)
                   data.reset()
    finetune   for each batch: set_input, set_labels, finetune()
               (a batch without features or labels ends the epoch)
    backprop   with the network's pretrain flag switched off:
                   for each batch: network.fit(batch)

Batch Boundary Checks:
    Before every batch read, each loop
        1. calls context.check_canceled()  → may raise CancellationSignal
        2. asks the LearningMonitor        → stop request ends the loop
    so a batch is processed completely or not at all, and an empty
    iterator simply does nothing.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Iterator

from learnforge.data.iterator import DataSetIterator
from learnforge.model.network import Network
from learnforge.training.context import NodeContext
from learnforge.training.monitor import LearningMonitor

logger = logging.getLogger(__name__)


class Regime(str, Enum):
    PRETRAIN = "pretrain"
    FINETUNE = "finetune"
    BACKPROP = "backprop"

    @property
    def label(self) -> str:
        return {
            Regime.PRETRAIN: "Pretraining",
            Regime.FINETUNE: "Finetuning",
            Regime.BACKPROP: "Backpropagation",
        }[self]


def _should_stop(context: NodeContext, monitor: LearningMonitor) -> bool:
    context.check_canceled()
    return monitor.check_stop_learning()


@contextmanager
def pretrain_disabled(network: Network) -> Iterator[bool]:
    """
    Switch the network's pretrain flag off for the duration of the block.

    The original value is restored on every exit path, including
    cancellation and errors raised inside the block.

    Yields
    ------
    bool
        The flag value that will be restored.
    """
    was_pretrain = network.pretrain
    if was_pretrain:
        network.pretrain = False
    try:
        yield was_pretrain
    finally:
        network.pretrain = was_pretrain


def pretrain_one_epoch(
    network: Network,
    data: DataSetIterator,
    context: NodeContext,
    monitor: LearningMonitor,
    abort_remaining_layers_on_stop: bool = False,
) -> None:
    """
    Pretrain every layer of ``network`` once over ``data``.

    Parameters
    ----------
    network : Network
        The network to pretrain, layer by layer in training order.
    data : DataSetIterator
        Batch source. Exhausted and reset once per layer.
    context : NodeContext
        Cancellation and progress messages.
    monitor : LearningMonitor
        A stop request ends the current layer's batch loop.
    abort_remaining_layers_on_stop : bool
        If True, a stop request also skips all remaining layers. If False
        the remaining layers are still visited (and the still-set stop flag
        ends each of their loops before the first batch).

    Raises
    ------
    CancellationSignal
        If the host cancels execution.
    """
    for i in range(network.n_layers):
        context.set_message(f"Performing Pretraining on Layer: {i + 1}")
        stopped = False
        while data.has_next():
            if _should_stop(context, monitor):
                stopped = True
                break
            network.pretrain_layer(i, data.next().features)
        data.reset()

        if stopped and abort_remaining_layers_on_stop:
            logger.info(
                f"Stop requested during pretraining of layer {i + 1}; "
                f"skipping {network.n_layers - i - 1} remaining layer(s)"
            )
            return


def finetune_one_epoch(
    network: Network,
    data: DataSetIterator,
    context: NodeContext,
    monitor: LearningMonitor,
) -> None:
    """
    Finetune ``network`` once over ``data``.

    A batch missing its features or labels marks the end of supervised
    data: the loop ends and that batch is not used.
    """
    context.set_message("Performing Finetuning")
    while data.has_next():
        if _should_stop(context, monitor):
            break

        batch = data.next()
        if batch.features is None or batch.labels is None:
            logger.debug("Batch without features or labels; ending finetuning epoch")
            break
        network.set_input(batch.features)
        network.set_labels(batch.labels)
        network.finetune()


def backprop_one_epoch(
    network: Network,
    data: DataSetIterator,
    context: NodeContext,
    monitor: LearningMonitor,
) -> None:
    """
    One epoch of supervised backpropagation, one fit step per batch.

    fit() on a network with pretraining enabled would pretrain every layer
    on each batch first, so the flag is forced off while the loop runs.
    """
    context.set_message("Performing Backpropagation")
    with pretrain_disabled(network):
        while data.has_next():
            if _should_stop(context, monitor):
                break
            network.fit(data.next())


def run_regime(
    regime: Regime | str,
    network: Network,
    data: DataSetIterator,
    context: NodeContext,
    monitor: LearningMonitor,
    abort_remaining_layers_on_stop: bool = False,
) -> None:
    """Run one epoch of ``regime``."""
    regime = Regime(regime)
    if regime is Regime.PRETRAIN:
        pretrain_one_epoch(
            network, data, context, monitor,
            abort_remaining_layers_on_stop=abort_remaining_layers_on_stop,
        )
    elif regime is Regime.FINETUNE:
        finetune_one_epoch(network, data, context, monitor)
    else:
        backprop_one_epoch(network, data, context, monitor)
