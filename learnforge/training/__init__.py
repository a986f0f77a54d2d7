"""
learnforge.training — Learner Control Loop
============================================
This subpackage drives training; the network does the math.

    LearnerController ──► run_regime (pretrain | finetune | backprop)
         │                    │  per batch: context.check_canceled()
         │                    │             monitor.check_stop_learning()
         │                    ▼
         │               network.pretrain_layer / finetune / fit
         │
         ├─ before epoch 1: transfer_full_initialization(previous, network)
         └─ after each epoch: score → LearningStatus + HistoryEntry → observers

Components:
    - monitor.py   — LearningMonitor, LearningStatus, HistoryEntry,
                     HistoryLedger, TrainingSession
    - context.py   — NodeContext protocol + ExecutionContext
    - epochs.py    — Regime enum and the three one-epoch loops
    - transfer.py  — weight / updater transfer between networks
    - learner.py   — LearnerController
"""

from learnforge.training.monitor import (
    HistoryEntry,
    HistoryLedger,
    LearningMonitor,
    LearningStatus,
    TrainingSession,
)
from learnforge.training.context import ExecutionContext, NodeContext
from learnforge.training.epochs import (
    Regime,
    backprop_one_epoch,
    finetune_one_epoch,
    pretrain_disabled,
    pretrain_one_epoch,
    run_regime,
)
from learnforge.training.transfer import (
    transfer_full_initialization,
    transfer_updater,
    transfer_weights,
)
from learnforge.training.learner import LearnerController
