from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import date
from typing import Any, Dict

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.abspath(os.path.join(SCRIPT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


def load_env_file(env_path: str) -> None:
    if not os.path.exists(env_path):
        return
    with open(env_path, "r", encoding="utf-8") as env_file:
        for line in env_file:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            os.environ.setdefault(key, value)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Aggregate one month of survey responses into summaries and analysis packages."
    )
    parser.add_argument(
        "--month",
        default=None,
        help="Month to process as YYYY-MM or YYYY-MM-DD (default: current month).",
    )
    parser.add_argument(
        "--reset-ai-state",
        action="store_true",
        help="Mark rewritten packages unprocessed and drop their narratives.",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Environment file path (default: .env).",
    )
    return parser.parse_args()


def run_processing(month_value: str | None, reset_ai_state: bool) -> Dict[str, Any]:
    from src.api.dependencies import get_survey_processing_service
    from src.core.config import get_settings
    from src.core.logging import configure_logging
    from src.shared.time import parse_month

    configure_logging(get_settings().log_level)
    month = parse_month(month_value) if month_value else date.today().replace(day=1)
    result = get_survey_processing_service().process_month(month, reset_ai_state=reset_ai_state)
    return result.model_dump(mode="json", by_alias=True)


def main() -> None:
    args = parse_args()
    load_env_file(args.env_file)
    result = run_processing(args.month, args.reset_ai_state)
    print(json.dumps(result, indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
