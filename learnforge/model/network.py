"""
LearnForge Multi-Layer Network
===============================
The network handle the learner drives. The training core only relies on
the ``Network`` protocol below; ``MultiLayerNetwork`` is the reference
PyTorch implementation of it.

What the Learner Needs From a Network:
    - layer count and per-layer parameter vectors (for weight transfer)
    - optimizer ("updater") state (for updater transfer)
    - a ``pretrain`` flag that makes fit() pretrain before backprop
    - pretrain_layer(i, x), set_input/set_labels + finetune(), fit(batch)
    - score(): loss of the most recent training step

Training Operations of MultiLayerNetwork:
    pretrain_layer(i, x)
        x → layers[0..i-1] (no grad) → layers[i].pretrain_loss → step
        Only autoencoder layers learn here; other kinds are skipped.

    finetune()
        input → hidden layers (no grad) → output layer loss → step
        Only the output layer's parameters change.

    fit(batch)
        [pretrain every layer on the batch if self.pretrain]
        input → all layers → output layer loss → backward → updater step

Usage:
    >>> net = MultiLayerNetwork(config.network)
    >>> net.fit(DataSet(features, labels))
    >>> net.score()
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Optional, Protocol, Sequence

import torch
import torch.nn as nn

from learnforge.model.kinds import LayerKind
from learnforge.model.layers import OutputLayer, build_layer

if TYPE_CHECKING:
    from learnforge.config import NetworkConfig
    from learnforge.data.iterator import DataSet

logger = logging.getLogger(__name__)

# Per-parameter state entries each updater produces
_UPDATER_STATE_KEYS = {
    "sgd": {"momentum_buffer"},
    "adam": {"step", "exp_avg", "exp_avg_sq"},
}


class Network(Protocol):
    """Capabilities of a trainable network used by the training core."""

    pretrain: bool

    @property
    def n_layers(self) -> int:
        ...

    @property
    def layers(self) -> Sequence:
        ...

    def get_layer_params(self, index: int) -> torch.Tensor:
        ...

    def set_layer_params(self, index: int, params: torch.Tensor) -> None:
        ...

    def updater_state(self) -> Optional[dict]:
        ...

    def set_updater_state(self, state: dict) -> None:
        ...

    def pretrain_layer(self, index: int, features: torch.Tensor) -> None:
        ...

    def set_input(self, features: torch.Tensor) -> None:
        ...

    def set_labels(self, labels: torch.Tensor) -> None:
        ...

    def finetune(self) -> None:
        ...

    def fit(self, batch: DataSet) -> None:
        ...

    def score(self) -> float:
        ...


class MultiLayerNetwork(nn.Module):
    """
    Feed-forward network of dense, autoencoder and output layers.

    Parameters
    ----------
    config : NetworkConfig
        Layer descriptions and optimizer settings. Validated on
        construction; only buildable layer kinds are accepted.
    """

    def __init__(self, config: NetworkConfig):
        super().__init__()
        config.validate(buildable=True)

        self.config = config
        self.pretrain = config.pretrain

        torch.manual_seed(config.seed)
        self.layers = nn.ModuleList([
            build_layer(layer_config, index=i)
            for i, layer_config in enumerate(config.layers)
        ])

        # Created lazily on first supervised step
        self.optimizer: Optional[torch.optim.Optimizer] = None
        self._pretrain_optimizers: dict[int, torch.optim.Optimizer] = {}

        self._input: Optional[torch.Tensor] = None
        self._labels: Optional[torch.Tensor] = None
        self._score = 0.0

        logger.info(
            f"MultiLayerNetwork: {self.n_layers} layers, "
            f"{sum(p.numel() for p in self.parameters()):,} parameters, "
            f"updater={config.updater}, pretrain={self.pretrain}"
        )

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def n_layers(self) -> int:
        return len(self.layers)

    @property
    def layer_kinds(self) -> list[LayerKind]:
        return [layer.kind for layer in self.layers]

    @property
    def device(self) -> torch.device:
        return next(self.parameters()).device

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        x = self._prepare(x)
        for layer in self.layers:
            x = layer(x)
        return x

    def _prepare(self, x: torch.Tensor) -> torch.Tensor:
        return x.to(self.device, dtype=torch.float32)

    @torch.no_grad()
    def _activate_up_to(self, index: int, features: torch.Tensor) -> torch.Tensor:
        x = self._prepare(features)
        for layer in self.layers[:index]:
            x = layer(x)
        return x

    def _output_layer(self) -> OutputLayer:
        last = self.layers[-1]
        if last.kind is not LayerKind.OUTPUT:
            raise ValueError(
                "Supervised training requires the last layer to be an "
                f"output layer, found '{last.kind.value}'"
            )
        return last

    # ------------------------------------------------------------------
    # Parameters & updater
    # ------------------------------------------------------------------

    def get_layer_params(self, index: int) -> torch.Tensor:
        """Flattened copy of all parameters of layer ``index``."""
        return nn.utils.parameters_to_vector(
            self.layers[index].parameters()
        ).detach().clone()

    @torch.no_grad()
    def set_layer_params(self, index: int, params: torch.Tensor) -> None:
        """
        Overwrite the parameters of layer ``index`` from a flat vector.

        Raises
        ------
        ValueError
            If the vector length does not match the layer's parameter count.
        """
        layer = self.layers[index]
        expected = sum(p.numel() for p in layer.parameters())
        if params.numel() != expected:
            raise ValueError(
                f"Parameter vector of length {params.numel()} does not fit "
                f"layer {index} with {expected} parameters"
            )

        params = params.reshape(-1).to(self.device)
        offset = 0
        for p in layer.parameters():
            n = p.numel()
            p.copy_(params[offset:offset + n].view_as(p))
            offset += n

    def _ensure_updater(self) -> torch.optim.Optimizer:
        if self.optimizer is None:
            if self.config.updater == "adam":
                self.optimizer = torch.optim.Adam(
                    self.parameters(), lr=self.config.learning_rate
                )
            else:
                self.optimizer = torch.optim.SGD(
                    self.parameters(),
                    lr=self.config.learning_rate,
                    momentum=self.config.momentum,
                )
        return self.optimizer

    @property
    def updater(self) -> Optional[torch.optim.Optimizer]:
        return self.optimizer

    def updater_state(self) -> Optional[dict]:
        """
        Snapshot of the optimizer state dict, or None if no update has been
        applied yet. The snapshot shares no tensors with the live optimizer.
        """
        if self.optimizer is None or not self.optimizer.state:
            return None
        return copy.deepcopy(self.optimizer.state_dict())

    def set_updater_state(self, state: dict) -> None:
        """
        Load optimizer state produced by another network's updater_state().

        The state is checked against this network's updater before anything
        is loaded, so a rejected state leaves the current updater untouched.

        Raises
        ------
        ValueError
            If the state comes from a different kind of updater, or its
            parameter groups or buffer shapes do not match this network.
        """
        optimizer = self._ensure_updater()
        self._check_updater_state(optimizer, state)
        optimizer.load_state_dict(copy.deepcopy(state))

    def _check_updater_state(self, optimizer: torch.optim.Optimizer, state: dict) -> None:
        groups = optimizer.param_groups
        saved_groups = state.get("param_groups", [])
        if len(saved_groups) != len(groups):
            raise ValueError(
                f"Updater state has {len(saved_groups)} parameter group(s), "
                f"this network's updater has {len(groups)}"
            )

        params = []
        for group, saved in zip(groups, saved_groups):
            own_keys = set(group) - {"params"}
            saved_keys = set(saved) - {"params"}
            if own_keys != saved_keys:
                raise ValueError(
                    f"Updater state does not belong to a "
                    f"'{self.config.updater}' updater (hyperparameters: "
                    f"{', '.join(sorted(saved_keys ^ own_keys))} differ)"
                )
            if len(saved["params"]) != len(group["params"]):
                raise ValueError(
                    f"Updater state covers {len(saved['params'])} parameters, "
                    f"this network has {len(group['params'])}"
                )
            params.extend(zip(saved["params"], group["params"]))

        by_id = dict(params)
        allowed = _UPDATER_STATE_KEYS.get(self.config.updater, set())
        for param_id, param_state in state.get("state", {}).items():
            param = by_id.get(param_id)
            if param is None:
                raise ValueError(f"Updater state refers to unknown parameter {param_id}")
            unknown = set(param_state) - allowed
            if unknown:
                raise ValueError(
                    f"Updater state entries {sorted(unknown)} are not used "
                    f"by a '{self.config.updater}' updater"
                )
            for name, value in param_state.items():
                if (
                    isinstance(value, torch.Tensor)
                    and value.dim() > 0
                    and value.shape != param.shape
                ):
                    raise ValueError(
                        f"Updater buffer '{name}' has shape {tuple(value.shape)}, "
                        f"parameter has shape {tuple(param.shape)}"
                    )

    # ------------------------------------------------------------------
    # Training operations
    # ------------------------------------------------------------------

    def pretrain_layer(self, index: int, features: torch.Tensor) -> None:
        """One unsupervised step on layer ``index``; no-op if not pretrainable."""
        if not 0 <= index < self.n_layers:
            raise IndexError(
                f"Layer index {index} out of range for {self.n_layers} layers"
            )
        layer = self.layers[index]
        if not layer.kind.is_pretrainable:
            logger.debug(f"Layer {index} ({layer.kind.value}) is not pretrainable")
            return

        x = self._activate_up_to(index, features)

        optimizer = self._pretrain_optimizers.get(index)
        if optimizer is None:
            optimizer = torch.optim.SGD(
                layer.parameters(), lr=self.config.pretrain_learning_rate
            )
            self._pretrain_optimizers[index] = optimizer

        self.train()
        optimizer.zero_grad(set_to_none=True)
        loss = layer.pretrain_loss(x)
        loss.backward()
        optimizer.step()
        self._score = loss.item()

    def set_input(self, features: torch.Tensor) -> None:
        self._input = features

    def set_labels(self, labels: torch.Tensor) -> None:
        self._labels = labels

    def finetune(self) -> None:
        """
        One supervised step on the output layer only, using the input and
        labels previously set with set_input() / set_labels().
        """
        if self._input is None or self._labels is None:
            raise ValueError("finetune() requires set_input() and set_labels() first")
        output = self._output_layer()
        hidden = self._activate_up_to(self.n_layers - 1, self._input)

        optimizer = self._ensure_updater()
        self.train()
        optimizer.zero_grad(set_to_none=True)
        loss = output.compute_loss(hidden, self._labels.to(self.device))
        loss.backward()
        optimizer.step()
        self._score = loss.item()

    def fit(self, batch: DataSet) -> None:
        """
        One supervised backprop step on ``batch``.

        If ``self.pretrain`` is set, every layer is first pretrained on the
        batch's features, which is why the backprop regime turns it off.
        """
        if batch.features is None or batch.labels is None:
            raise ValueError("fit() requires a batch with features and labels")

        if self.pretrain:
            for i in range(self.n_layers):
                self.pretrain_layer(i, batch.features)

        output = self._output_layer()
        optimizer = self._ensure_updater()
        self.train()
        optimizer.zero_grad(set_to_none=True)

        x = self._prepare(batch.features)
        for layer in self.layers[:-1]:
            x = layer(x)
        loss = output.compute_loss(x, batch.labels.to(self.device))
        loss.backward()
        optimizer.step()
        self._score = loss.item()

    def score(self) -> float:
        """Loss of the most recent training step (0.0 before any step)."""
        return self._score
