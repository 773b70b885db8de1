"""Run the computer-use agent on a single task."""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from config import load_config
from exceptions import AgentError
from goal_runner import GoalRunner
from goal_types import GoalDefinition
from run_types import Goal


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a computer-use agent against one goal")
    parser.add_argument(
        "--task",
        type=str,
        required=True,
        help="The task for the agent to perform",
    )
    parser.add_argument(
        "--url",
        type=str,
        help="Page to open before the first step",
    )
    parser.add_argument(
        "--constraint",
        action="append",
        default=[],
        help="Constraint the agent must respect (can be used multiple times)",
    )
    parser.add_argument(
        "--success",
        action="append",
        default=[],
        help="Success criterion (can be used multiple times)",
    )
    parser.add_argument(
        "--timeout-ms",
        type=int,
        help="Wall-clock budget for the run in milliseconds",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        help="Step budget for the run",
    )
    parser.add_argument(
        "--headful",
        action="store_true",
        help="Run browser in headful mode (show GUI)",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to config file (default: config.json if exists)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the run report as JSON",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )
    return parser


async def run(args: argparse.Namespace, logger: logging.Logger) -> int:
    overrides = {"headful": args.headful or None, "max_steps": args.max_steps}
    config = load_config(
        Path(args.config) if args.config else None,
        {k: v for k, v in overrides.items() if v is not None},
    )

    definition = GoalDefinition(
        id="cli",
        goal=Goal(
            task=args.task,
            constraints=args.constraint,
            success_criteria=args.success,
            timeout_ms=args.timeout_ms,
        ),
        start_url=args.url,
    )
    runner = GoalRunner(config=config, logger=logger)
    result = await runner.run_goal(definition)

    if args.json and result.report is not None:
        print(json.dumps(result.report.to_dict(), indent=2))
    else:
        print(f"Status: {result.status}")
        print(f"Steps:  {result.step_count}")
        print(f"Result: {result.reason}")
    return 0 if result.success else 1


def main() -> None:
    args = _build_arg_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )
    logger = logging.getLogger("cua_agent")

    try:
        exit_code = asyncio.run(run(args, logger))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        exit_code = 130
    except AgentError as e:
        logger.error(f"Error: {e}")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
