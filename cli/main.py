from __future__ import annotations

import argparse
import asyncio
import functools
import signal
from datetime import timezone
from typing import Any, Sequence

from app import UnknownWorkflowError, WorkflowFacade
from domain.ports import LoggerPort
from domain.services import Orchestrator, WorkflowContext
from infra.agents import build_agents
from infra.browser import PlaywrightBrowser
from infra.config import ConfigError, FileSystemConfigProvider
from infra.llm import OpenAIChatClient, VisionDecisionService
from infra.logs import FileSystemScreenshotStore
from infra.persistence import SQLiteLogRepository, SQLiteTaskRepository, SQLiteWorkflowRepository
from infra.runtime import StructuredLogger, SystemClock, UuidIdGenerator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="job-pipeline")
    parser.add_argument("--db-path", default="job_pipeline.db")
    parser.add_argument("--config-dir", default="./config", help="Path to config folder")
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Create a workflow for the given job URLs and run it")
    run_p.add_argument("job_urls", nargs="+", metavar="URL")
    run_p.add_argument("--query", default="", help="Search query recorded on the workflow")
    run_p.add_argument("--user-id", default="local")
    run_p.add_argument("--headless", dest="headless", action="store_true", default=None)
    run_p.add_argument("--no-headless", dest="headless", action="store_false")

    status_p = sub.add_parser("status", help="Show workflow counters and task breakdown")
    status_p.add_argument("workflow_id")

    logs_p = sub.add_parser("logs", help="Print the workflow log trail")
    logs_p.add_argument("workflow_id")
    logs_p.add_argument("--limit", type=int, default=None)

    tasks_p = sub.add_parser("tasks", help="List the tasks of a workflow")
    tasks_p.add_argument("workflow_id")

    sub.add_parser("validate-config", help="Check config.json and profile.json")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    workflow_repo = SQLiteWorkflowRepository(db_path=args.db_path)
    task_repo = SQLiteTaskRepository(db_path=args.db_path)
    log_repo = SQLiteLogRepository(db_path=args.db_path)
    clock = SystemClock()
    ids = UuidIdGenerator()
    facade = WorkflowFacade(
        workflow_repo=workflow_repo,
        task_repo=task_repo,
        log_repo=log_repo,
        clock=clock,
        id_generator=ids,
    )

    if args.command == "validate-config":
        errors = FileSystemConfigProvider(args.config_dir).validate()
        if errors:
            print("Config validation failed:")
            for err in errors:
                print(f"  - {err}")
            return 1
        print("Config OK")
        return 0

    try:
        if args.command == "status":
            progress = facade.get_progress(args.workflow_id)
            wf = progress.workflow
            print(f"workflow={wf.id} status={wf.status.value} query={wf.search_query!r}")
            print(
                f"jobs={wf.processed_jobs}/{wf.total_jobs} "
                f"successful={wf.successful_applications} failed={wf.failed_applications}"
            )
            breakdown = ", ".join(f"{k}={v}" for k, v in sorted(progress.task_counts.items()))
            print(f"tasks={progress.total_tasks} ({breakdown or '-'}) progress={progress.progress_percent}%")
            return 0

        if args.command == "logs":
            for entry in facade.list_logs(args.workflow_id, limit=args.limit):
                ts = entry.timestamp.astimezone(timezone.utc).isoformat()
                print(f"{ts} | {entry.level.value:<7} | {entry.agent} | {entry.message}")
            return 0

        if args.command == "tasks":
            for task in facade.list_tasks(args.workflow_id):
                message = task.result.message if task.result else "-"
                print(
                    f"{task.id} | {task.type.value} | {task.status.value} | "
                    f"retry {task.current_retry}/{task.max_retries} | {task.job_url} | {message}"
                )
            return 0
    except UnknownWorkflowError as exc:
        print(str(exc))
        return 1

    if args.command == "run":
        return _handle_run(args, workflow_repo, task_repo, log_repo, clock, ids)

    raise SystemExit(f"Unsupported command: {args.command}")


def stop_on_sigint(loop: Any, orchestrator: Orchestrator, logger: LoggerPort) -> set[asyncio.Task[None]]:
    """Route SIGINT to ``stop_workflow``. The returned set holds stop tasks until they finish."""
    pending: set[asyncio.Task[None]] = set()

    def request_stop() -> None:
        task = loop.create_task(orchestrator.stop_workflow())
        pending.add(task)
        task.add_done_callback(pending.discard)

    try:
        loop.add_signal_handler(signal.SIGINT, request_stop)
    except NotImplementedError:
        logger.warning("sigint_handler_unavailable")
    return pending


def _handle_run(
    args: argparse.Namespace,
    workflow_repo: SQLiteWorkflowRepository,
    task_repo: SQLiteTaskRepository,
    log_repo: SQLiteLogRepository,
    clock: SystemClock,
    ids: UuidIdGenerator,
) -> int:
    config_provider = FileSystemConfigProvider(args.config_dir)
    errors = config_provider.validate()
    if errors:
        print("Config validation failed:")
        for err in errors:
            print(f"  - {err}")
        return 1

    try:
        cfg = config_provider.get_config()
        profile = config_provider.get_profile()
    except ConfigError as exc:
        print(f"Config error: {exc}")
        return 1

    logger = StructuredLogger()
    headless = cfg.headless if args.headless is None else args.headless
    facade = WorkflowFacade(
        workflow_repo=workflow_repo,
        task_repo=task_repo,
        log_repo=log_repo,
        clock=clock,
        id_generator=ids,
        max_retries=cfg.max_retries,
    )
    workflow = facade.create_workflow(
        user_id=args.user_id,
        search_query=args.query,
        job_urls=args.job_urls,
    )
    print(f"Created workflow {workflow.id} with {workflow.total_jobs} jobs")

    decision_service = None
    if cfg.use_vision:
        decision_service = VisionDecisionService(
            OpenAIChatClient(
                api_key=cfg.openai_key,
                base_url=cfg.openai_base_url,
                model=cfg.vision_model,
            ),
            logger=logger,
        )
    context = WorkflowContext(
        browser=PlaywrightBrowser(headless=headless),
        task_repo=task_repo,
        log_repo=log_repo,
        profile=profile,
        decision_service=decision_service,
        llm=OpenAIChatClient(
            api_key=cfg.openai_key,
            base_url=cfg.openai_base_url,
            model=cfg.openai_model,
        ),
        screenshot_store=FileSystemScreenshotStore(base_dir=cfg.screenshots_dir, clock=clock),
    )
    orchestrator = Orchestrator(
        workflow_repo=workflow_repo,
        agent_factory=functools.partial(build_agents, logger=logger, clock=clock),
        clock=clock,
        id_generator=ids,
        logger=logger,
        inter_task_delay=cfg.inter_task_delay_seconds,
    )

    async def _run() -> int:
        stop_tasks = stop_on_sigint(asyncio.get_running_loop(), orchestrator, logger)

        final = await orchestrator.start_workflow(workflow, context)
        print(
            f"result={final.status.value} processed={final.processed_jobs}/{final.total_jobs} "
            f"successful={final.successful_applications} failed={final.failed_applications}"
        )
        await asyncio.gather(*stop_tasks)
        return 0

    return asyncio.run(_run())


if __name__ == "__main__":
    raise SystemExit(main())
