"""
CLI for training the anomaly detector.

Usage:
    python -m src.anomaly.train [options]
"""

import argparse
import logging
import os
import sys
import time

import pandas as pd
import structlog

from src.core.logger import setup_logging

from .cache import NullModelStore, RedisModelStore
from .detector import AnomalyDetector
from .features import FEATURE_NAMES
from .models import DetectorConfig, RedisConfig
from .trainer import ModelTrainer

logger = structlog.get_logger(__name__)


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    defaults = DetectorConfig.from_env()

    parser = argparse.ArgumentParser(
        description="Train the threat anomaly detector",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
        Examples:
        # Cold start on synthetic data
        python -m src.anomaly.train

        # Train on recorded feature vectors and store the model in Redis
        python -m src.anomaly.train \\
            --samples features.jsonl \\
            --num-trees 200 \\
            --redis-host redis

        # Check for retraining every 6 hours
        python -m src.anomaly.train --samples features.jsonl --schedule 360
        """,
    )

    # Data
    parser.add_argument(
        "--samples",
        help="JSON lines file of feature records (default: synthetic cold start data)",
    )

    # Forest parameters
    parser.add_argument(
        "--num-trees",
        type=int,
        default=defaults.num_trees,
        help=f"Number of isolation trees (default: {defaults.num_trees})",
    )
    parser.add_argument(
        "--subsample-size",
        type=int,
        default=defaults.subsample_size,
        help=f"Rows sampled per tree (default: {defaults.subsample_size})",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=defaults.anomaly_threshold,
        help=f"Anomaly score threshold (default: {defaults.anomaly_threshold})",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=defaults.seed,
        help="Random seed for reproducible forests",
    )

    # Redis configuration
    parser.add_argument(
        "--redis-host",
        default=os.getenv("REDIS_HOST"),
        help="Redis host used to persist the model (default: REDIS_HOST env var, none)",
    )

    # Scheduling
    parser.add_argument(
        "--schedule",
        type=int,
        help="Re-read samples and retrain every N minutes (default: run once)",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def build_config(args) -> DetectorConfig:
    """Build configuration from arguments"""
    defaults = DetectorConfig.from_env()
    defaults.num_trees = args.num_trees
    defaults.subsample_size = args.subsample_size
    defaults.anomaly_threshold = args.threshold
    defaults.seed = args.seed
    return defaults


def build_store(args):
    if not args.redis_host:
        return NullModelStore()
    redis_config = RedisConfig.from_env()
    redis_config.host = args.redis_host
    return RedisModelStore(redis_config)


def load_samples(path: str) -> list[dict]:
    """Read feature records from a JSON lines file"""
    frame = pd.read_json(path, lines=True)
    missing = set(FEATURE_NAMES) - set(frame.columns)
    if missing:
        logger.warning("Samples missing features, encoding as 0", missing=sorted(missing))
    # Cells absent from a row come back as NaN, encode them as missing
    frame = frame.astype(object).where(frame.notna(), None)
    return frame.to_dict(orient="records")


def train_once(detector: AnomalyDetector, samples_path: str | None) -> int:
    """Run training once

    Returns:
        Number of sample rows consumed from the samples file
    """
    if not samples_path:
        detector.initialize()
        return 0

    samples = load_samples(samples_path)
    logger.info("Loaded training samples", path=samples_path, count=len(samples))
    if not detector.update_model(samples):
        detector.train_model()
    return len(samples)


def train_scheduled(
    detector: AnomalyDetector, samples_path: str, interval_minutes: int, consumed: int = 0
):
    """Pick up rows appended to the samples file and run the retraining check"""
    logger.info("Starting scheduled training", interval_minutes=interval_minutes)
    trainer = ModelTrainer(detector, min_new_samples=detector.config.retrain_batch_size)

    iteration = 0
    while True:
        iteration += 1
        logger.info("Starting training iteration", iteration=iteration)

        try:
            samples = load_samples(samples_path)
            new_samples = samples[consumed:]
            consumed = len(samples)
            if new_samples:
                detector.update_model(new_samples)
            result = trainer.check_and_retrain()
            logger.info("Training iteration completed", iteration=iteration, retrained=result)
        except Exception as e:
            logger.error("Training iteration failed", iteration=iteration, error=str(e))

        sleep_seconds = interval_minutes * 60
        logger.info("Sleeping until next iteration", sleep_seconds=sleep_seconds)
        time.sleep(sleep_seconds)


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)

    log_level = getattr(logging, args.log_level)
    setup_logging(level=log_level)

    logger.info("Starting anomaly detector training")

    try:
        detector = AnomalyDetector(build_config(args), store=build_store(args))
        consumed = train_once(detector, args.samples)
        logger.info("Training completed successfully", info=detector.get_model_info())

        if args.schedule:
            if not args.samples:
                logger.error("Scheduled training requires --samples")
                return 1
            train_scheduled(detector, args.samples, args.schedule, consumed)

        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Training failed", error=str(e), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
