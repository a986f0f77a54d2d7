"""
LearnForge Learner Controller
==============================
Ties the training pieces together for one learner:

    configure()      static checks before training (columns, model spec)
    train()          the multi-epoch run
      └ run_epoch()  one regime epoch + score, status and history
    reset()          back to the state of a fresh learner

Epoch Lifecycle:
    context.check_canceled()
    run_regime(...)                  → epochs.py, checks stop/cancel per batch
    set_score(network.score())
    update_view(epoch, max, label)   → LearningStatus to observers
    log_epoch_score(network, epoch)  → HistoryEntry to ledger + observers

Error Policy:
    - Configuration defects raise before any training (configure()).
    - A misplaced output layer is logged, not raised.
    - CancellationSignal propagates and aborts the whole run.
    - A stop request ends the current epoch's loop and then the run,
      without raising.

Usage:
    >>> learner = LearnerController()
    >>> learner.configure(model_spec, table_spec, ["x1", "x2"])
    >>> net = learner.train(net, data, "backprop", max_epochs=10,
    ...                     context=ExecutionContext(), previous=old_net)
    >>> learner.get_history()
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Any, Optional, Sequence

from learnforge.data.iterator import DataSetIterator
from learnforge.data.table_spec import (
    TableSpec,
    name_type_list,
    validate_column_selection,
)
from learnforge.errors import CancellationSignal
from learnforge.model.kinds import LayerKind
from learnforge.model.model_spec import ModelSpec
from learnforge.model.network import Network
from learnforge.training.context import NodeContext
from learnforge.training.epochs import Regime, run_regime
from learnforge.training.monitor import (
    HistoryEntry,
    LearningMonitor,
    LearningStatus,
    TrainingSession,
)
from learnforge.training.transfer import transfer_full_initialization

logger = logging.getLogger(__name__)


class LearnerController:
    """
    Drives training of a network and keeps its score, status and history.

    Parameters
    ----------
    session : TrainingSession, optional
        State to work on. A new session is created if omitted; passing one
        in lets several components share the same monitor and history.
    context : NodeContext, optional
        Default context used for observer notifications outside a
        training call (e.g. by reset()).
    abort_remaining_layers_on_stop : bool
        Forwarded to the pretrain regime.
    """

    def __init__(
        self,
        session: Optional[TrainingSession] = None,
        context: Optional[NodeContext] = None,
        abort_remaining_layers_on_stop: bool = False,
    ):
        self.session = session if session is not None else TrainingSession()
        self.context = context
        self.abort_remaining_layers_on_stop = abort_remaining_layers_on_stop

        self._is_convolutional = False
        self._is_recurrent = False
        self._input_table_contains_img = False
        self.output_spec: Optional[ModelSpec] = None

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def configure(
        self,
        model_spec: ModelSpec,
        table_spec: TableSpec,
        selected_columns: Sequence[str],
    ) -> ModelSpec:
        """
        Check a model/table pair before learning and derive learner flags.

        Parameters
        ----------
        model_spec : ModelSpec
            Description of the network to learn.
        table_spec : TableSpec
            Description of the table to learn on.
        selected_columns : sequence of str
            Names of the feature columns to learn on.

        Returns
        -------
        ModelSpec
            Output description: same network, selected columns recorded
            as learned inputs, no labels, marked as trained.

        Raises
        ------
        InvalidSettingsError
            If the column selection does not fit the table.
        """
        validate_column_selection(table_spec, selected_columns)

        self._is_convolutional = model_spec.contains_convolution
        self._is_recurrent = model_spec.contains_recurrent
        self._input_table_contains_img = table_spec.contains_image()

        for warning in model_spec.validate():
            logger.warning(warning)

        self.output_spec = replace(
            model_spec,
            learned_columns=tuple(name_type_list(selected_columns, table_spec)),
            label_columns=(),
            is_trained=True,
        )
        return self.output_spec

    def validate_output_layer_placement(self, layers: Sequence[Any]) -> bool:
        """
        Check whether the network ends in an output layer.

        Parameters
        ----------
        layers : sequence
            LayerKinds, LayerConfigs or layer modules, in training order.

        Returns
        -------
        bool
            True if the last layer is the network's only output layer; it
            has to be replaced before uptraining. False if there is no
            output layer (one can be appended) or if an output layer sits
            anywhere but last, which is logged as a configuration defect.
        """
        if not layers:
            return False

        kinds = [LayerKind.of(layer) for layer in layers]
        misplaced = [
            i for i, kind in enumerate(kinds[:-1]) if kind is LayerKind.OUTPUT
        ]
        if misplaced:
            logger.error(
                f"Configuration defect: the output layer is not the last "
                f"layer of the network (found at position(s) "
                f"{[i + 1 for i in misplaced]} of {len(kinds)})"
            )
            return False

        if kinds[-1] is LayerKind.OUTPUT:
            logger.debug(
                "Last layer is output layer. Should be replaced in learner "
                "for uptraining."
            )
            return True
        return False

    check_output_layer = validate_output_layer_placement

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def run_epoch(
        self,
        network: Network,
        data: DataSetIterator,
        regime: Regime | str,
        epoch: int,
        max_epochs: int,
        context: NodeContext,
    ) -> float:
        """
        Run one epoch of ``regime`` and publish its result.

        Parameters
        ----------
        epoch : int
            1-based number of this epoch, as shown to observers.

        Returns
        -------
        float
            The network's score after the epoch.

        Raises
        ------
        CancellationSignal
            If the host cancels during the epoch.
        """
        regime = Regime(regime)
        run_regime(
            regime, network, data, context, self.session.monitor,
            abort_remaining_layers_on_stop=self.abort_remaining_layers_on_stop,
        )

        score = network.score()
        self.set_score(score)
        self.update_view(epoch, max_epochs, regime.label, context)
        self.log_epoch_score(network, epoch, context)
        return score

    def train(
        self,
        network: Network,
        data: DataSetIterator,
        regime: Regime | str,
        max_epochs: int,
        context: NodeContext,
        previous: Optional[Network] = None,
        transfer_updater: bool = True,
    ) -> Network:
        """
        Train ``network`` for up to ``max_epochs`` epochs.

        Parameters
        ----------
        network : Network
            The network to train (modified in place and returned).
        data : DataSetIterator
            Training batches; reset between epochs.
        regime : Regime or str
            "pretrain", "finetune" or "backprop".
        max_epochs : int
            Upper bound on the number of epochs.
        context : NodeContext
            Cancellation, progress messages and observers.
        previous : Network, optional
            Previously trained network to continue from. Its weights (and
            updater, if ``transfer_updater``) are copied in before epoch 1.
        transfer_updater : bool
            Also copy the optimizer state of ``previous``.

        Returns
        -------
        Network
            The trained network. Training may have ended early because of
            a stop request; check ``get_learning_monitor()`` to tell.

        Raises
        ------
        CancellationSignal
            If the host cancels; no further epochs are run.
        """
        regime = Regime(regime)
        if max_epochs < 1:
            raise ValueError(f"max_epochs must be >= 1, got {max_epochs}")

        transfer_full_initialization(previous, network, include_updater=transfer_updater)

        logger.info(
            f"Starting {regime.label.lower()}: up to {max_epochs} epochs "
            f"on {network.n_layers} layers"
        )
        start_time = time.time()

        try:
            for epoch in range(1, max_epochs + 1):
                context.check_canceled()
                score = self.run_epoch(
                    network, data, regime, epoch, max_epochs, context
                )
                logger.info(
                    f"[{regime.label}] Epoch {epoch}/{max_epochs} — "
                    f"score={score:.4f}"
                )

                if regime is not Regime.PRETRAIN:
                    data.reset()

                if self.session.monitor.check_stop_learning():
                    logger.info(
                        f"[{regime.label}] Stop requested; ending training "
                        f"after epoch {epoch}/{max_epochs}"
                    )
                    break
        except CancellationSignal:
            logger.info(f"[{regime.label}] Training canceled")
            raise

        logger.info(
            f"[{regime.label}] Training finished in "
            f"{time.time() - start_time:.1f}s — score={self.get_score()}"
        )
        return network

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def _notify(self, obj: Any, context: Optional[NodeContext] = None) -> None:
        context = context or self.context
        if context is not None:
            context.notify_observers(obj)

    def update_view(
        self,
        current_epoch: int,
        max_epochs: int,
        training_method: str,
        context: Optional[NodeContext] = None,
    ) -> LearningStatus:
        """Publish a LearningStatus built from the current score."""
        status = LearningStatus(
            current_epoch, max_epochs, self.get_score(), training_method
        )
        self._notify(status, context)
        self.set_learning_status(status)
        return status

    def log_epoch_score(
        self,
        network: Network,
        epoch: int,
        context: Optional[NodeContext] = None,
    ) -> HistoryEntry:
        """Record the network's score for ``epoch`` and publish it."""
        entry = HistoryEntry(network.score(), epoch)
        self.session.history.append(entry)
        self._notify(entry, context)
        return entry

    def pass_obj_to_view(self, obj: Any, context: Optional[NodeContext] = None) -> None:
        self._notify(obj, context)

    # ------------------------------------------------------------------
    # Lifecycle & accessors
    # ------------------------------------------------------------------

    def reset(self, context: Optional[NodeContext] = None) -> None:
        """
        Return to the state of a freshly constructed learner.

        Observers receive ``None`` first so they can return to idle.
        """
        self._notify(None, context)
        self.session.reset()
        self._is_convolutional = False
        self._is_recurrent = False
        self._input_table_contains_img = False
        self.output_spec = None

    def is_convolutional(self) -> bool:
        return self._is_convolutional

    def is_recurrent(self) -> bool:
        return self._is_recurrent

    def input_table_contains_img(self) -> bool:
        return self._input_table_contains_img

    def get_score(self) -> Optional[float]:
        return self.session.score

    def set_score(self, score: Optional[float]) -> None:
        self.session.score = score

    def get_learning_status(self) -> Optional[LearningStatus]:
        return self.session.status

    def set_learning_status(self, status: Optional[LearningStatus]) -> None:
        self.session.status = status

    def get_learning_monitor(self) -> LearningMonitor:
        return self.session.monitor

    def get_history(self) -> list[HistoryEntry]:
        return self.session.history.entries()

    def __repr__(self) -> str:
        return (
            f"LearnerController(score={self.get_score()}, "
            f"epochs_recorded={len(self.session.history)}, "
            f"stop_requested={self.session.monitor.check_stop_learning()})"
        )
