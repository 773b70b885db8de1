"""CLI-friendly orchestrator for running goal files through the agent."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncContextManager, AsyncIterator, Callable, List, Optional, Sequence, Set

from agent import Agent, AgentSettings
from browser import SimpleBrowser
from computer import PlaywrightComputer
from config import RunnerConfig, load_config
from cua_client import CuaClient
from defaults import NullMemoryStore
from exceptions import AgentError, GoalLoadError
from goal_loader import discover_goals
from goal_types import GoalDefinition, GoalRunResult, GoalSuiteResult
from policy import ScopePolicy
from reasoner import CuaReasoner, CuaReasonerConfig
from reporters import BaseReporter, JSONReporter, JUnitReporter, ReportFormat
from stores import DiskSnapshotStore, JsonlMemoryStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GoalRunner:
    """High-level runner that gives every goal its own browser and reasoner session."""

    def __init__(
        self,
        config: RunnerConfig,
        logger: Optional[logging.Logger] = None,
        agent_factory: Optional[Callable[[GoalDefinition], AsyncContextManager[Agent]]] = None,
    ):
        self.config = config
        self.logger = logger or logging.getLogger("goal_runner")
        self._agent_factory = agent_factory or self.open_agent

    @asynccontextmanager
    async def open_agent(self, definition: GoalDefinition) -> AsyncIterator[Agent]:
        """Start a browser and wire a fresh agent for one goal."""
        browser_cfg = self.config.browser
        storage = self.config.storage
        reasoner_cfg = self.config.reasoner

        settings = AgentSettings.from_config(self.config.agent)
        if definition.max_steps:
            settings.max_steps = definition.max_steps

        browser = SimpleBrowser(
            browser_type=browser_cfg.browser,
            headless=browser_cfg.headless,
            viewport_width=browser_cfg.viewport_width,
            viewport_height=browser_cfg.viewport_height,
            slow_mo=browser_cfg.slow_mo,
            user_agent=browser_cfg.user_agent,
            logger=self.logger.getChild("browser"),
        )
        try:
            await browser.start()
            reasoner = CuaReasoner(
                client=CuaClient(reasoner_cfg, logger=self.logger.getChild("cua_client")),
                instructions=reasoner_cfg.instructions,
                config=CuaReasonerConfig(
                    stop_on_message=reasoner_cfg.stop_on_message,
                    auto_confirm_text=reasoner_cfg.auto_confirm_text,
                    keep_thread_on_message=reasoner_cfg.keep_thread_on_message,
                ),
                logger=self.logger.getChild("reasoner"),
            )
            if storage.save_run_log:
                memory = JsonlMemoryStore(storage.runs_folder)
            else:
                memory = NullMemoryStore()
            agent = Agent(
                computer=PlaywrightComputer(browser, settle_ms=browser_cfg.settle_ms),
                reasoner=reasoner,
                memory=memory,
                policy=ScopePolicy(),
                settings=settings,
                logger=self.logger.getChild("agent"),
            )
            if storage.save_screenshots:
                agent.with_snapshot_store(DiskSnapshotStore(storage.runs_folder))
            yield agent
        finally:
            await browser.close()

    async def run_goal(self, definition: GoalDefinition) -> GoalRunResult:
        """Run a single goal definition."""
        start = _utcnow()
        try:
            async with self._agent_factory(definition) as agent:
                report = await agent.run(definition.goal, start_url=definition.start_url)
        except Exception as exc:
            self.logger.error(f"Goal {definition.id} crashed: {exc}", exc_info=True)
            return GoalRunResult(
                definition=definition,
                started_at=start,
                finished_at=_utcnow(),
                error=f"Runner exception: {exc}",
                browser_type=self.config.browser.browser,
            )
        self.logger.info(
            f"Goal {definition.id}: {report.status.value} in {report.step_count} steps (run {report.run_id})"
        )
        return GoalRunResult(
            definition=definition,
            started_at=start,
            finished_at=_utcnow(),
            report=report,
            browser_type=self.config.browser.browser,
        )

    def _skipped(self, definition: GoalDefinition) -> GoalRunResult:
        reason = definition.skip_reason or "marked as skip"
        self.logger.info(f"Skipping {definition.id}: {reason}")
        now = _utcnow()
        return GoalRunResult(
            definition=definition,
            started_at=now,
            finished_at=now,
            error=f"Skipped: {reason}",
        )

    async def run_sequential(self, definitions: Sequence[GoalDefinition]) -> List[GoalRunResult]:
        """Run goals one after another."""
        results: List[GoalRunResult] = []
        for i, definition in enumerate(definitions, 1):
            self.logger.info(f"=== Running goal {definition.id} ({i}/{len(definitions)}) ===")
            if definition.skip:
                results.append(self._skipped(definition))
                continue
            result = await self.run_goal(definition)
            results.append(result)
            self._generate_report(result)
        return results

    async def run_parallel(
        self,
        definitions: Sequence[GoalDefinition],
        max_workers: int = 4,
    ) -> List[GoalRunResult]:
        """Run goals concurrently with limited concurrency."""
        semaphore = asyncio.Semaphore(max_workers)

        async def run_with_limit(definition: GoalDefinition, index: int) -> GoalRunResult:
            async with semaphore:
                self.logger.info(f"=== Starting goal {definition.id} ({index}/{len(definitions)}) ===")
                if definition.skip:
                    return self._skipped(definition)
                result = await self.run_goal(definition)
                self._generate_report(result)
                return result

        tasks = [run_with_limit(d, i + 1) for i, d in enumerate(definitions)]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        final_results: List[GoalRunResult] = []
        for i, result in enumerate(results):
            if isinstance(result, Exception):
                self.logger.error(f"Goal failed with exception: {result}")
                now = _utcnow()
                final_results.append(GoalRunResult(
                    definition=definitions[i],
                    started_at=now,
                    finished_at=now,
                    error=f"Exception: {result}",
                ))
            else:
                final_results.append(result)
        return final_results

    async def run_all(self, definitions: Sequence[GoalDefinition]) -> GoalSuiteResult:
        """Run all goals with configured parallelism."""
        start_time = _utcnow()

        if self.config.parallel_workers > 1:
            self.logger.info(
                f"Running {len(definitions)} goals with {self.config.parallel_workers} parallel workers"
            )
            results = await self.run_parallel(definitions, self.config.parallel_workers)
        else:
            results = await self.run_sequential(definitions)

        suite_result = GoalSuiteResult(
            results=results,
            started_at=start_time,
            finished_at=_utcnow(),
        )
        self._generate_suite_reports(suite_result)
        return suite_result

    def _reporters(self) -> List[BaseReporter]:
        requested = ReportFormat(self.config.storage.output_format)
        return [r for r in (JSONReporter(), JUnitReporter()) if requested.includes(r.format)]

    def _generate_report(self, result: GoalRunResult) -> None:
        """Generate reports for a single goal run."""
        output_dir = self.config.storage.reports_folder
        for reporter in self._reporters():
            path = reporter.generate(result, output_dir)
            self.logger.info(f"{reporter.format.value.upper()} report: {path}")

    def _generate_suite_reports(self, suite: GoalSuiteResult) -> None:
        """Generate suite-level reports."""
        output_dir = self.config.storage.reports_folder
        for reporter in self._reporters():
            path = reporter.generate_suite(suite.results, output_dir)
            self.logger.info(f"Suite {reporter.format.value.upper()} report: {path}")


async def run_from_cli_args(args: argparse.Namespace, logger: logging.Logger) -> int:
    """Entry point shared by the CLI script."""
    include_tags: Optional[Set[str]] = set(args.tag) if args.tag else None
    exclude_tags: Optional[Set[str]] = set(args.exclude_tag) if args.exclude_tag else None

    try:
        definitions = discover_goals(
            Path(args.goals_dir),
            only_ids=args.goal if args.goal else None,
            include_tags=include_tags,
            exclude_tags=exclude_tags,
            include_skipped=args.include_skipped,
            sort_by_priority=args.sort_by_priority,
        )
    except GoalLoadError as exc:
        logger.error(str(exc))
        return 1

    if not definitions:
        logger.warning("No goals found matching filters")
        return 0

    config_path = Path(args.config) if args.config else None
    cli_overrides = {
        "browser": args.browser,
        "headful": args.headful or None,
        "parallel": args.parallel,
        "verbose": args.verbose or None,
        "output_format": args.output_format,
        "reports_dir": args.reports_dir,
        "runs_dir": args.runs_dir,
        "model": args.model,
        "max_steps": args.max_steps,
    }
    cli_overrides = {k: v for k, v in cli_overrides.items() if v is not None}

    try:
        config = load_config(config_path, cli_overrides)
    except Exception as exc:
        logger.error(f"Failed to load config: {exc}")
        return 1

    logger.info(f"Loaded {len(definitions)} goal(s)")
    if config.verbose:
        logger.info(f"Browser: {config.browser.browser}, Headless: {config.browser.headless}")
        logger.info(f"Parallel workers: {config.parallel_workers}")
        logger.info(f"Model: {config.reasoner.model}")

    runner = GoalRunner(config=config, logger=logger)
    suite_result = await runner.run_all(definitions)

    print("\n" + "=" * 60)
    print("GOAL RUN SUMMARY")
    print("=" * 60)
    print(f"Total:  {suite_result.total}")
    print(f"Passed: {suite_result.passed}")
    print(f"Failed: {suite_result.failed}")
    print(f"Pass Rate: {suite_result.pass_rate:.1f}%")
    print(f"Duration: {suite_result.duration_seconds:.1f}s")
    print("=" * 60)

    failed = [r for r in suite_result.results if not r.success]
    if failed:
        print("\nFailed Goals:")
        for result in failed:
            print(f"  - {result.definition.id} [{result.status}]: {result.reason[:80]}")

    return 1 if suite_result.failed > 0 else 0


def _build_arg_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Run natural-language browser goals with a computer-use agent.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Run all goals
  %(prog)s --goal search-docs           # Run a specific goal
  %(prog)s --tag smoke                  # Run goals tagged 'smoke'
  %(prog)s --parallel 4 --headful       # Four browsers at once, visible
  %(prog)s --output-format all          # Generate all report formats
        """,
    )

    goal_group = parser.add_argument_group("Goal Selection")
    goal_group.add_argument(
        "--goals-dir",
        default="goals",
        help="Directory containing goal YAML/JSON files (default: goals)",
    )
    goal_group.add_argument(
        "--goal",
        action="append",
        help="Specific goal ID to run (can be used multiple times)",
    )
    goal_group.add_argument(
        "--tag",
        action="append",
        help="Only run goals with this tag (can be used multiple times)",
    )
    goal_group.add_argument(
        "--exclude-tag",
        action="append",
        help="Exclude goals with this tag (can be used multiple times)",
    )
    goal_group.add_argument(
        "--include-skipped",
        action="store_true",
        help="Include goals marked as skip=true",
    )
    goal_group.add_argument(
        "--sort-by-priority",
        action="store_true",
        help="Sort goals by priority (1=highest first)",
    )

    browser_group = parser.add_argument_group("Browser Options")
    browser_group.add_argument(
        "--browser",
        choices=["chromium", "firefox", "webkit"],
        help="Browser engine to use (default: chromium)",
    )
    browser_group.add_argument(
        "--headful",
        action="store_true",
        help="Run browser in headful mode (show GUI)",
    )

    exec_group = parser.add_argument_group("Execution Options")
    exec_group.add_argument(
        "--parallel",
        type=int,
        metavar="N",
        help="Number of goals run concurrently (default: 1)",
    )
    exec_group.add_argument(
        "--max-steps",
        type=int,
        metavar="N",
        help="Step budget per run (default: 40)",
    )
    exec_group.add_argument(
        "--model",
        help="Computer-use model name (default: OPENAI_CUA_MODEL or computer-use-preview)",
    )
    exec_group.add_argument(
        "--config",
        help="Path to config file (default: config.json if exists)",
    )

    output_group = parser.add_argument_group("Output Options")
    output_group.add_argument(
        "--reports-dir",
        help="Directory for saving reports (default: reports)",
    )
    output_group.add_argument(
        "--runs-dir",
        help="Directory for run logs and screenshots (default: runs)",
    )
    output_group.add_argument(
        "--output-format",
        choices=["json", "junit", "all"],
        help="Report output format (default: json)",
    )
    output_group.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )
    output_group.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-essential output",
    )

    return parser


def main() -> None:
    """Main entry point."""
    parser = _build_arg_parser()
    args = parser.parse_args()

    if args.quiet:
        log_level = logging.WARNING
    elif args.verbose:
        log_level = logging.DEBUG
    else:
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format="[%(levelname)s] %(message)s" if not args.verbose else "[%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger("goal_runner")

    try:
        exit_code = asyncio.run(run_from_cli_args(args, logger))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        exit_code = 130
    except AgentError as exc:
        logger.error(f"Error: {exc}")
        exit_code = 1
    except Exception as exc:
        logger.exception(f"Unexpected error: {exc}")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
