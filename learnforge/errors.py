"""
LearnForge Errors
=================
Exception types raised (or deliberately caught) by the learner.

    ConfigurationDefect   — structural problem found before training starts
    InvalidSettingsError  — bad column selection / settings (a ConfigurationDefect)
    CancellationSignal    — the host aborted the whole run
    TransferFailure       — one layer could not receive weights (logged, not raised)

A stop request from the LearningMonitor is NOT an exception: the running
regime simply leaves its batch loop.
"""

from __future__ import annotations


class ConfigurationDefect(ValueError):
    """A network or table description that must not be trained on."""


class InvalidSettingsError(ConfigurationDefect):
    """User settings (e.g. the selected columns) do not fit the input table."""


class CancellationSignal(Exception):
    """Raised by a NodeContext when the host has requested an abort."""

    def __init__(self, message: str = "Execution canceled"):
        super().__init__(message)


class TransferFailure(RuntimeError):
    """
    Weight transfer between two layers failed.

    Parameters
    ----------
    source_index, target_index : int
        0-indexed layer positions in the source and target networks.
    source_type, target_type : str
        Class names of the two layers.
    cause : Exception
        The underlying error (usually a size mismatch).
    """

    def __init__(
        self,
        source_index: int,
        target_index: int,
        source_type: str,
        target_type: str,
        cause: Exception,
    ):
        self.source_index = source_index
        self.target_index = target_index
        self.source_type = source_type
        self.target_type = target_type
        self.cause = cause
        super().__init__(
            f"Could not transfer weights from layer: {source_index + 1} "
            f"({source_type}) of old network to layer: {target_index + 1} "
            f"({target_type}) of new network"
        )
