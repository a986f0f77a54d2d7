#!/usr/bin/env python3
"""
LearnForge — Training Script
==============================
Trains a MultiLayerNetwork on a synthetic, three-class blob dataset with
the configured regime. Optionally continues from a first run to show
weight and updater transfer (uptraining).

Ctrl+C once requests a cooperative stop (the current batch finishes);
Ctrl+C twice cancels the run.

Usage:
    python scripts/train.py --smoke-test
    python scripts/train.py --config configs/default.yaml --epochs 20
    python scripts/train.py --smoke-test --pretrain-first --continue-training
"""

import argparse
import logging
import signal
import sys
from pathlib import Path

import numpy as np

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from learnforge.config import LearnForgeConfig
from learnforge.data.iterator import TensorDataSetIterator
from learnforge.data.table_spec import TableSpec
from learnforge.errors import CancellationSignal
from learnforge.model.model_spec import ModelSpec
from learnforge.model.network import MultiLayerNetwork
from learnforge.training.context import ExecutionContext
from learnforge.training.learner import LearnerController
from learnforge.training.monitor import HistoryEntry

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def make_blobs(n_in: int, n_classes: int, n_per_class: int, seed: int):
    """Gaussian blobs, one per class, with integer labels."""
    rng = np.random.default_rng(seed)
    centers = rng.normal(scale=3.0, size=(n_classes, n_in))
    features = np.concatenate([
        rng.normal(loc=c, scale=1.0, size=(n_per_class, n_in)) for c in centers
    ])
    labels = np.repeat(np.arange(n_classes), n_per_class)
    return features.astype(np.float32), labels.astype(np.int64)


def install_interrupt_handler(learner: LearnerController, ctx: ExecutionContext) -> None:
    def handler(signum, frame):
        monitor = learner.get_learning_monitor()
        if monitor.check_stop_learning():
            logger.warning("Second interrupt: canceling training")
            ctx.cancel()
        else:
            logger.warning("Interrupt: stopping after the current batch")
            monitor.request_stop()

    signal.signal(signal.SIGINT, handler)


def run_pretrain_pass(learner: LearnerController, network, data, ctx: ExecutionContext) -> None:
    """
    One pretraining epoch ahead of the configured run.

    A stop requested during this pass only ends the pass: the flag is
    cleared so that the configured run still gets all of its epochs.
    """
    learner.train(network, data, "pretrain", max_epochs=1, context=ctx)
    monitor = learner.get_learning_monitor()
    if monitor.check_stop_learning():
        logger.info("Pretraining pass stopped early; continuing with the configured run")
        monitor.reset()


def main():
    parser = argparse.ArgumentParser(
        description="LearnForge Training",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Quick smoke test:
    python scripts/train.py --smoke-test

    # Configured run:
    python scripts/train.py --config configs/default.yaml

    # Layer-wise pretraining, then backprop continuing from the result:
    python scripts/train.py --smoke-test --pretrain-first --continue-training
        """,
    )
    parser.add_argument("--config", type=str, default="configs/default.yaml")
    parser.add_argument("--smoke-test", action="store_true")
    parser.add_argument("--epochs", type=int, default=None)
    parser.add_argument(
        "--regime", choices=["pretrain", "finetune", "backprop"], default=None,
    )
    parser.add_argument(
        "--pretrain-first", action="store_true",
        help="Run one pretraining pass before the configured regime",
    )
    parser.add_argument(
        "--continue-training", action="store_true",
        help="Train a second, fresh network initialized from the first",
    )
    parser.add_argument("--samples-per-class", type=int, default=200)
    args = parser.parse_args()

    if args.smoke_test:
        config = LearnForgeConfig.for_smoke_test()
    else:
        config = LearnForgeConfig.from_yaml(args.config)
    if args.epochs is not None:
        config.training.epochs = args.epochs
    if args.regime is not None:
        config.training.regime = args.regime
    config.validate()
    print(config)

    net_cfg, train_cfg = config.network, config.training

    # ─── Validation ─────────────────────────────────────────────────
    columns = {f"x{i}": "double" for i in range(net_cfg.n_in)}
    table_spec = TableSpec.from_dict(columns)
    model_spec = ModelSpec.from_network_config(net_cfg)

    learner = LearnerController(
        abort_remaining_layers_on_stop=train_cfg.abort_remaining_layers_on_stop,
    )
    learner.configure(model_spec, table_spec, list(columns))
    learner.validate_output_layer_placement(net_cfg.layers)

    # ─── Data ───────────────────────────────────────────────────────
    features, labels = make_blobs(
        net_cfg.n_in, net_cfg.n_out, args.samples_per_class, train_cfg.seed
    )
    data = TensorDataSetIterator.from_numpy(
        features, labels,
        batch_size=train_cfg.batch_size,
        shuffle=train_cfg.shuffle,
        seed=train_cfg.seed,
    )

    device = train_cfg.resolve_device()

    def print_history(obj):
        if isinstance(obj, HistoryEntry):
            logger.info(f"history: epoch={obj.epoch} score={obj.score:.4f}")

    with ExecutionContext(
        observers=[print_history], show_progress=train_cfg.show_progress,
    ) as ctx:
        install_interrupt_handler(learner, ctx)
        try:
            network = MultiLayerNetwork(net_cfg).to(device)
            if args.pretrain_first:
                run_pretrain_pass(learner, network, data, ctx)

            learner.train(
                network, data, train_cfg.regime,
                max_epochs=train_cfg.epochs, context=ctx,
            )

            if args.continue_training:
                logger.info("=" * 60)
                logger.info("Continuing training on a fresh network")
                logger.info("=" * 60)
                learner.reset(ctx)
                fresh = MultiLayerNetwork(net_cfg).to(device)
                learner.train(
                    fresh, data, train_cfg.regime,
                    max_epochs=train_cfg.epochs, context=ctx,
                    previous=network,
                    transfer_updater=train_cfg.transfer_updater,
                )
        except CancellationSignal:
            logger.warning("Training canceled")
            sys.exit(1)

    scores = learner.session.history.scores()
    if len(scores):
        logger.info(
            f"\nTraining complete!"
            f"\n  Epochs recorded: {len(scores)}"
            f"\n  First score: {scores[0]:.4f}"
            f"\n  Last score:  {scores[-1]:.4f}"
        )


if __name__ == "__main__":
    main()
