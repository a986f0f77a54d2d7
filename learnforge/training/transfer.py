"""
LearnForge State Transfer
==========================
Moves learned state from a previously trained network into a new one,
so that training can continue (uptraining) instead of starting over.

What Gets Transferred:
    weights: layer by layer, for every position both networks share:
                   for i < min(source.n_layers, target.n_layers):
                       target.layer[i] ← source.layer[i]
               Layers beyond the shorter network are left untouched.
    updater: the optimizer state (momentum buffers, Adam moments) as a
               whole. Needed when continuing training with an updater
               that keeps a gradient history.

Failure Policy:
    A layer that cannot take the source weights (size mismatch, different
    layer type) is reported as a TransferFailure warning and skipped; the
    remaining layers are still transferred. A source without updater state
    is not an error: the target keeps its own updater.

Usage:
    >>> transfer_full_initialization(previous_net, new_net, include_updater=True)
"""

from __future__ import annotations

import logging
from typing import Optional

from learnforge.errors import TransferFailure
from learnforge.model.network import Network

logger = logging.getLogger(__name__)


def _layer_type(network: Network, index: int) -> str:
    return type(network.layers[index]).__name__


def transfer_weights(source: Network, target: Network) -> int:
    """
    Copy layer parameters from ``source`` into ``target``.

    Assumes both networks list their layers in the same order. Only the
    positions present in both networks are touched.

    Parameters
    ----------
    source : Network
        The network to read weights from.
    target : Network
        The network to write weights into (modified in place).

    Returns
    -------
    int
        Number of layers whose weights were transferred.
    """
    shared = min(source.n_layers, target.n_layers)
    transferred = 0

    for i in range(shared):
        source_type = _layer_type(source, i)
        target_type = _layer_type(target, i)
        try:
            target.set_layer_params(i, source.get_layer_params(i))
        except (ValueError, RuntimeError, TypeError) as e:
            failure = TransferFailure(i, i, source_type, target_type, e)
            logger.warning(f"{failure}. Reason: {e}")
            continue

        transferred += 1
        logger.info(
            f"Successfully transferred weights from layer: {i + 1} "
            f"({source_type}) of old network to layer: {i + 1} "
            f"({target_type}) of new network"
        )

    if source.n_layers != target.n_layers:
        logger.info(
            f"Networks differ in depth ({source.n_layers} vs {target.n_layers} "
            f"layers); only the first {shared} layer(s) were considered"
        )
    return transferred


def transfer_updater(source: Network, target: Network) -> bool:
    """
    Copy the optimizer state of ``source`` into ``target``.

    Returns
    -------
    bool
        True if the state was transferred. False if ``source`` has no
        updater state (informational) or ``target`` cannot accept it
        (warning); in both cases ``target`` keeps its own updater.
    """
    state = source.updater_state()
    if state is None:
        logger.info(
            "Could not transfer updater between nets as there is no "
            "updater state in the source net"
        )
        return False

    try:
        target.set_updater_state(state)
    except (ValueError, KeyError, RuntimeError) as e:
        logger.warning(f"Could not transfer updater between nets. Reason: {e}")
        return False

    logger.info("Successfully transferred updater between nets.")
    return True


def transfer_full_initialization(
    source: Optional[Network],
    target: Network,
    include_updater: bool = True,
) -> None:
    """
    Transfer weights and, optionally, the updater.

    This is the entry point for continuing training from a previous run.
    With no previous network (``source is None``) nothing happens.
    """
    if source is None:
        return

    transfer_weights(source, target)
    if include_updater:
        transfer_updater(source, target)
