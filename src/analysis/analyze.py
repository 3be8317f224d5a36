"""
CLI for analyzing threat records.

Reads threat records (one JSON object per line), analyzes each one and
writes the analyses as JSON lines.

Usage:
    python -m src.analysis.analyze records.jsonl [options]
"""

import argparse
import json
import logging
import os
import sys
import time

import structlog

from src.anomaly.cache import NullModelStore, RedisModelStore
from src.anomaly.detector import AnomalyDetector
from src.anomaly.models import AnomalyDetectionError, DetectorConfig, RedisConfig
from src.core.logger import setup_logging

from .engine import AnalysisEngine
from .models import AnalysisConfig

logger = structlog.get_logger(__name__)


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    detector_defaults = DetectorConfig.from_env()

    parser = argparse.ArgumentParser(
        description="Composite threat analysis over a file of records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
        Examples:
        # Analyze records and print the analyses
        python -m src.analysis.analyze records.jsonl

        # Only score anomalies, through the batch path
        python -m src.analysis.analyze records.jsonl --batch-only --batch-size 500

        # Reuse the model trained by src.anomaly.train
        python -m src.analysis.analyze records.jsonl --redis-host redis
        """,
    )

    parser.add_argument("input", help="JSON lines file of threat records ('-' for stdin)")
    parser.add_argument(
        "--output",
        help="Write analyses to this file (default: stdout)",
    )

    # Detector parameters
    parser.add_argument(
        "--threshold",
        type=float,
        default=detector_defaults.anomaly_threshold,
        help=f"Anomaly score threshold (default: {detector_defaults.anomaly_threshold})",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=detector_defaults.seed,
        help="Random seed for the cold start forest",
    )
    parser.add_argument(
        "--redis-host",
        default=os.getenv("REDIS_HOST"),
        help="Redis host holding a persisted model (default: REDIS_HOST env var, none)",
    )

    # Batch mode
    parser.add_argument(
        "--batch-only",
        action="store_true",
        help="Score anomalies in batches instead of running full analyses",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=AnalysisConfig.from_env().batch_size,
        help="Records per batch (default: 100 or BATCH_SIZE env var)",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def build_engine(args) -> AnalysisEngine:
    """Build the engine from arguments and environment"""
    detector_config = DetectorConfig.from_env()
    detector_config.anomaly_threshold = args.threshold
    detector_config.seed = args.seed

    if args.redis_host:
        redis_config = RedisConfig.from_env()
        redis_config.host = args.redis_host
        store = RedisModelStore(redis_config)
    else:
        store = NullModelStore()

    config = AnalysisConfig.from_env()
    config.batch_size = args.batch_size

    return AnalysisEngine(detector=AnomalyDetector(detector_config, store=store), config=config)


def read_records(stream) -> list[dict]:
    records = []
    for line_number, line in enumerate(stream, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("Skipping malformed record", line=line_number, error=str(e))
            continue

        if not isinstance(record, dict):
            logger.warning(
                "Skipping malformed record",
                line=line_number,
                error=f"expected a JSON object, got {type(record).__name__}",
            )
            continue
        records.append(record)
    return records


def run(engine: AnalysisEngine, records: list[dict], out, batch_only: bool) -> dict:
    """Analyze records and write one JSON line per result"""
    stats = {"total": len(records), "analyzed": 0, "anomalies": 0, "rejected": 0}

    if batch_only:
        for start in range(0, len(records), engine.config.batch_size):
            batch = records[start : start + engine.config.batch_size]
            results = engine.process_batch(batch)
            stats["rejected"] += len(batch) - len(results)

            for result in results:
                out.write(json.dumps(result.to_dict(), default=str) + "\n")
                stats["analyzed"] += 1
                stats["anomalies"] += int(result.is_anomaly)
        return stats

    for record in records:
        try:
            envelope = engine.analyze_data(record)
        except AnomalyDetectionError as e:
            logger.warning("Record rejected", error=str(e))
            stats["rejected"] += 1
            continue

        analysis = envelope["analysis"]
        envelope["analysis"] = analysis.to_dict()
        out.write(json.dumps(envelope, default=str) + "\n")
        stats["analyzed"] += 1
        stats["anomalies"] += int(analysis.anomaly_detection.is_anomaly)

    return stats


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)

    log_level = getattr(logging, args.log_level)
    setup_logging(level=log_level)

    logger.info("Starting threat analysis", input=args.input)
    start_time = time.time()

    try:
        engine = build_engine(args)
        engine.initialize(start_batching=False)

        if args.input == "-":
            records = read_records(sys.stdin)
        else:
            with open(args.input, encoding="utf-8") as stream:
                records = read_records(stream)

        if args.output:
            with open(args.output, "w", encoding="utf-8") as out:
                stats = run(engine, records, out, args.batch_only)
        else:
            stats = run(engine, records, sys.stdout, args.batch_only)

        logger.info(
            "Analysis completed",
            elapsed_sec=round(time.time() - start_time, 2),
            **stats,
        )
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Analysis failed", error=str(e), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
