"""
LearnForge Batches & Iterators
===============================
Training data reaches the learner as a restartable sequence of batches.

The Iterator Contract:
    has_next()  → is there another batch?
    next()      → the next DataSet (only call after has_next())
    reset()     → rewind to the first batch (reshuffles if configured)

Every regime loop checks has_next() before reading, so a batch is either
consumed completely or not at all. The pretrain regime rewinds the
iterator once per layer, which is why iterators must be restartable.

Implementations:
    ListDataSetIterator    — over a fixed list of DataSet objects
    TensorDataSetIterator  — lazily slices feature/label tensors
                             (or numpy arrays) into batches
    DataLoaderIterator     — adapts a torch DataLoader yielding (x, y)

Usage:
    >>> data = TensorDataSetIterator.from_numpy(X, y, batch_size=32)
    >>> while data.has_next():
    ...     batch = data.next()
    >>> data.reset()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

import numpy as np
import torch
from torch.utils.data import DataLoader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DataSet:
    """
    One batch of training examples.

    Parameters
    ----------
    features : Tensor or None
        Feature matrix of shape (batch, n_in).
    labels : Tensor or None
        Labels for supervised regimes. A batch with missing features or
        labels marks the end of supervised data for the finetune regime.
    """
    features: Optional[torch.Tensor]
    labels: Optional[torch.Tensor] = None

    @property
    def is_supervised(self) -> bool:
        return self.features is not None and self.labels is not None

    def __len__(self) -> int:
        return 0 if self.features is None else int(self.features.shape[0])


class DataSetIterator:
    """Base class of restartable batch iterators."""

    def has_next(self) -> bool:
        raise NotImplementedError

    def next(self) -> DataSet:
        raise NotImplementedError

    def reset(self) -> None:
        raise NotImplementedError

    def __iter__(self) -> Iterator[DataSet]:
        return self

    def __next__(self) -> DataSet:
        if not self.has_next():
            raise StopIteration
        return self.next()


class ListDataSetIterator(DataSetIterator):
    """Iterates over a fixed, in-memory list of batches."""

    def __init__(self, batches: Sequence[DataSet]):
        self._batches = list(batches)
        self._cursor = 0

    def has_next(self) -> bool:
        return self._cursor < len(self._batches)

    def next(self) -> DataSet:
        if not self.has_next():
            raise StopIteration("No more batches; call reset() first")
        batch = self._batches[self._cursor]
        self._cursor += 1
        return batch

    def reset(self) -> None:
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._batches)


class TensorDataSetIterator(DataSetIterator):
    """
    Slices a feature tensor (and optional label tensor) into batches.

    Batches are built on demand; only the index order is materialized.

    Parameters
    ----------
    features : Tensor
        Shape (n_examples, n_in).
    labels : Tensor or None
        Shape (n_examples,) for class indices or (n_examples, n_out).
    batch_size : int
        Examples per batch. The last batch may be smaller.
    shuffle : bool
        Draw a new example order on every reset().
    seed : int
        Seed of the shuffling generator.
    """

    def __init__(
        self,
        features: torch.Tensor,
        labels: Optional[torch.Tensor] = None,
        batch_size: int = 32,
        shuffle: bool = False,
        seed: int = 42,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if labels is not None and labels.shape[0] != features.shape[0]:
            raise ValueError(
                f"features ({features.shape[0]}) and labels "
                f"({labels.shape[0]}) must have the same number of examples"
            )

        self.features = features
        self.labels = labels
        self.batch_size = batch_size
        self.shuffle = shuffle
        self._generator = torch.Generator().manual_seed(seed)
        self._order = self._new_order()
        self._cursor = 0
        logger.debug(
            f"TensorDataSetIterator: {features.shape[0]} examples, "
            f"{len(self)} batches of up to {batch_size}"
        )

    @classmethod
    def from_numpy(
        cls,
        features: np.ndarray,
        labels: Optional[np.ndarray] = None,
        **kwargs,
    ) -> TensorDataSetIterator:
        """Build an iterator from numpy arrays (features cast to float32)."""
        feature_tensor = torch.from_numpy(np.asarray(features, dtype=np.float32))
        label_tensor = None
        if labels is not None:
            label_tensor = torch.from_numpy(np.asarray(labels))
        return cls(feature_tensor, label_tensor, **kwargs)

    def _new_order(self) -> torch.Tensor:
        n = self.features.shape[0]
        if self.shuffle:
            return torch.randperm(n, generator=self._generator)
        return torch.arange(n)

    def has_next(self) -> bool:
        return self._cursor < len(self._order)

    def next(self) -> DataSet:
        if not self.has_next():
            raise StopIteration("No more batches; call reset() first")
        idx = self._order[self._cursor:self._cursor + self.batch_size]
        self._cursor += len(idx)
        labels = None if self.labels is None else self.labels[idx]
        return DataSet(self.features[idx], labels)

    def reset(self) -> None:
        self._cursor = 0
        if self.shuffle:
            self._order = self._new_order()

    def __len__(self) -> int:
        """Number of batches per pass."""
        n = self.features.shape[0]
        return (n + self.batch_size - 1) // self.batch_size


class DataLoaderIterator(DataSetIterator):
    """
    Adapts a torch DataLoader yielding ``(features, labels)`` pairs (or
    bare feature tensors) to the has_next()/next()/reset() contract.

    One batch is read ahead so that has_next() can answer without
    consuming anything the caller has not asked for.
    """

    def __init__(self, loader: DataLoader):
        self.loader = loader
        self._it = iter(loader)
        self._peeked: Optional[DataSet] = None
        self._exhausted = False

    def _fill(self) -> None:
        if self._peeked is not None or self._exhausted:
            return
        try:
            item = next(self._it)
        except StopIteration:
            self._exhausted = True
            return
        if isinstance(item, (tuple, list)):
            features = item[0]
            labels = item[1] if len(item) > 1 else None
        else:
            features, labels = item, None
        self._peeked = DataSet(features, labels)

    def has_next(self) -> bool:
        self._fill()
        return self._peeked is not None

    def next(self) -> DataSet:
        if not self.has_next():
            raise StopIteration("No more batches; call reset() first")
        batch, self._peeked = self._peeked, None
        return batch

    def reset(self) -> None:
        self._it = iter(self.loader)
        self._peeked = None
        self._exhausted = False

    def __len__(self) -> int:
        return len(self.loader)
