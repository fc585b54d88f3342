"""
Crashwatch command line interface.

Evaluates crash risk from a file of indicator readings, or prints the
effective risk model.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

import yaml

from crashwatch.config.logging import LogContext, configure_logging, set_evaluation_context
from crashwatch.config.settings import get_settings
from crashwatch.core.errors import ConfigurationError
from crashwatch.risk.engine import CrashRiskEngine, RiskBreakdown
from crashwatch.risk.model import load_risk_model

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_CONFIG_ERROR = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    model_options = argparse.ArgumentParser(add_help=False)
    model_options.add_argument(
        "--config",
        type=str,
        default=None,
        help="Risk model YAML (default: CRASHWATCH_RISK_MODEL_PATH or packaged model)",
    )

    parser = argparse.ArgumentParser(
        prog="crashwatch",
        description="Composite market crash risk scoring",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  crashwatch evaluate readings.json
  crashwatch evaluate readings.yaml --format table
  crashwatch evaluate readings.json --config my_model.yaml
  crashwatch show-model --config my_model.yaml

Readings file: a mapping of indicator to a number, null, or an object
with value / historicalAvg / warningLevel / dangerLevel, e.g.
  {"cape": 38.0, "yieldCurve": 0.5, "marginDebt": null, "vix": {"value": 18}}
        """,
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: CRASHWATCH_LOG_LEVEL)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    evaluate_parser = subparsers.add_parser(
        "evaluate", parents=[model_options], help="Score a readings file"
    )
    evaluate_parser.add_argument("readings", type=str, help="JSON or YAML readings file")
    evaluate_parser.add_argument(
        "--format",
        choices=["json", "table"],
        default="json",
        help="Output format (default: json)",
    )

    subparsers.add_parser(
        "show-model", parents=[model_options], help="Print the effective risk model"
    )

    return parser.parse_args(argv)


def load_readings_file(path: str) -> Any:
    """
    Read a readings document. YAML is a superset of JSON, so one parser
    handles both.

    Raises:
        OSError: If the file cannot be read
        yaml.YAMLError: If the file is not valid JSON/YAML
    """
    with open(Path(path), "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def format_table(breakdown: RiskBreakdown) -> str:
    """Render a breakdown as a plain-text table."""
    if breakdown.insufficient_data:
        header = "Crash risk: data unavailable"
    else:
        header = (
            f"Crash risk: {breakdown.total_score:.1f} / 100 "
            f"({breakdown.risk_level.label})"
        )
    frame = breakdown.to_frame()[["value", "sub_score", "status", "effective_weight"]]
    lines = [
        header,
        f"Critical warnings: {breakdown.critical_warning_count}  "
        f"Warnings: {breakdown.warning_count}  "
        f"Indicators used: {breakdown.available_count}/{len(breakdown.indicators)}",
        "",
        frame.to_string(float_format=lambda v: f"{v:.2f}", na_rep="-"),
    ]
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(
        level=args.log_level or settings.LOG_LEVEL,
        json_format=settings.LOG_JSON,
        environment=settings.ENVIRONMENT,
    )

    try:
        model = load_risk_model(args.config or settings.RISK_MODEL_PATH)
    except ConfigurationError as e:
        e.log()
        print(json.dumps({"error": e.to_dict()}, indent=2), file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if args.command == "show-model":
        print(yaml.safe_dump(model.to_dict(), sort_keys=False), end="")
        return EXIT_OK

    try:
        data = load_readings_file(args.readings)
    except (OSError, yaml.YAMLError) as e:
        logger.error("Cannot read readings file %s: %s", args.readings, e)
        return EXIT_INPUT_ERROR

    if data is None:
        data = {}
    if not isinstance(data, dict):
        logger.error("Readings file must contain a mapping, got %s", type(data).__name__)
        return EXIT_INPUT_ERROR

    engine = CrashRiskEngine(model)
    evaluation_id = set_evaluation_context()
    with LogContext(logger, source=args.readings):
        breakdown = engine.evaluate_mapping(data)
        logger.debug("Evaluation %s complete", evaluation_id)

    if args.format == "table":
        print(format_table(breakdown))
    else:
        print(json.dumps(breakdown.to_dict(), indent=2))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
