"""
Main Entry Point - Patient Risk Pipeline

Runs the complete pipeline against the patients API, or scores a local
JSON file of patient records without touching the network.
"""

import logging
import os
import signal
import sys
from contextlib import contextmanager
from typing import List, Optional

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.coreutils.config import PipelineConfig
from src.coreutils.env import env_get
from src.coreutils.errors import ConfigurationError
from src.coreutils.logging import log_function_call, setup_logging
from src.coreutils.request import CancellationToken
from src.load.local_storage import load_patient_records
from src.orchestration.pipeline import (
    PipelineOrchestrator,
    assess_records,
    log_alert_summary,
)
from src.orchestration.report import (
    EXIT_CANCELLED,
    EXIT_CONFIGURATION_ERROR,
    EXIT_SUCCESS,
    RunReport,
)

logger = logging.getLogger(__name__)


@contextmanager
def cancel_on_signals(token: CancellationToken):
    """Cancel the token on SIGINT/SIGTERM; a second SIGINT interrupts immediately"""

    def handler(signum, frame):
        if token.cancelled and signum == signal.SIGINT:
            raise KeyboardInterrupt
        logger.warning(f"🛑 Received signal {signum}, cancelling run...")
        token.cancel()

    previous = {
        signal.SIGINT: signal.signal(signal.SIGINT, handler),
        signal.SIGTERM: signal.signal(signal.SIGTERM, handler),
    }
    try:
        yield token
    finally:
        for signum, old_handler in previous.items():
            signal.signal(signum, old_handler)


def run_pipeline(
    config: PipelineConfig,
    dry_run: bool = False,
    save_output: bool = True,
    cancel_token: Optional[CancellationToken] = None,
) -> RunReport:
    """
    Run the complete pipeline

    Args:
        config: Pipeline configuration
        dry_run: If True, don't submit the assessment
        save_output: If True, save assessments and the run report locally
        cancel_token: Cancellation signal

    Returns:
        RunReport: Results and statistics
    """
    log_function_call("run_pipeline", dry_run=dry_run, save_output=save_output)

    orchestrator = PipelineOrchestrator(
        config, dry_run=dry_run, save_output=save_output, cancel_token=cancel_token
    )
    return orchestrator.run()


def run_assessment(input_path: str) -> int:
    """Score a local JSON file of patient records and log the alert sets"""
    logger.info(f"🚀 Assessing patients from {input_path}")

    records = load_patient_records(input_path)
    alerts, _, _, stats = assess_records(records)
    log_alert_summary(alerts)
    print(alerts.model_dump_json(indent=2))

    logger.info(f"✅ Assessed {stats['total_patients']} patients")
    return EXIT_SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    import argparse

    parser = argparse.ArgumentParser(description="Patient Risk Pipeline")
    parser.add_argument("command", choices=["run", "assess"], help="Command to run")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run in dry-run mode (no assessment submission)",
    )
    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Don't write assessments or the run report to the output directory",
    )
    parser.add_argument("--input", help="JSON file of patient records (assess command)")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )

    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    setup_logging(log_level, log_dir=env_get("LOG_DIR") or "logs")

    if args.command == "assess":
        if not args.input:
            parser.error("assess requires --input")
        try:
            return run_assessment(args.input)
        except (OSError, ValueError) as e:
            logger.error(f"❌ Could not assess {args.input}: {e}")
            return EXIT_CONFIGURATION_ERROR

    try:
        config = PipelineConfig.from_env()
    except ConfigurationError as e:
        logger.error(f"❌ Configuration error: {e}")
        return EXIT_CONFIGURATION_ERROR

    token = CancellationToken()
    try:
        with cancel_on_signals(token):
            report = run_pipeline(
                config,
                dry_run=args.dry_run,
                save_output=not args.no_save,
                cancel_token=token,
            )
    except KeyboardInterrupt:
        logger.info("🛑 Pipeline interrupted by user")
        return EXIT_CANCELLED

    print(f"Pipeline finished: {report.status.value} (exit code {report.exit_code})")
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
