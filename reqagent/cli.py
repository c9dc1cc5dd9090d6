"""Operator command line for the requirement engine.

Examples:
    reqagent score --title "Login lockout" --content "The system shall lock ..."
    reqagent check-duplicate --title "User Login"
    reqagent scan-duplicates --deprecate
    reqagent run-goal "Build a loan origination portal for retail banking"
    reqagent generate --industry finance --system-type B2C
    reqagent providers --health
"""

import argparse
import asyncio
import json
import logging
from typing import Optional

from reqagent.agent.autonomous import AutonomousGenerator
from reqagent.agent.coordinator import JobRunner
from reqagent.agent.orchestrator import PipelineOrchestrator
from reqagent.agent.registry import AgentRegistry
from reqagent.agent.schemas import AutonomousGenerationConfig, RequirementCandidate
from reqagent.analysis.accuracy import AccuracyScorer
from reqagent.analysis.duplicates import DuplicateDetector
from reqagent.core.config import configure_logging, settings
from reqagent.core.database import InMemoryRecordStore, MongoRecordStore, RecordStore
from reqagent.core.exceptions import ReqAgentError
from reqagent.providers.manager import ProviderManager

logger = logging.getLogger(__name__)


def _print_json(value) -> None:
    print(json.dumps(value, indent=2, ensure_ascii=False, default=str))


async def _open_store(in_memory: bool) -> RecordStore:
    if in_memory:
        logger.info("Using in-memory record store")
        return InMemoryRecordStore()
    store = MongoRecordStore()
    await store.connect()
    return store


async def _close_store(store: RecordStore) -> None:
    if isinstance(store, MongoRecordStore):
        await store.disconnect()


# ============== Commands ==============

async def cmd_score(args: argparse.Namespace, store: Optional[RecordStore]) -> int:
    candidate = RequirementCandidate(
        title=args.title,
        content=args.content,
        category=args.category,
        type=args.type,
        confidence=args.confidence,
    )
    scorer = AccuracyScorer()
    metrics = scorer.score_for_industry(candidate, args.industry)
    _print_json(metrics.model_dump())
    return 0


async def cmd_check_duplicate(args: argparse.Namespace, store: RecordStore) -> int:
    verdict = await DuplicateDetector(store).check_duplicate(args.title, args.content)
    _print_json(verdict.model_dump(mode="json"))
    return 0


async def cmd_scan_duplicates(args: argparse.Namespace, store: RecordStore) -> int:
    summary = await DuplicateDetector(store).scan_duplicates(deprecate=args.deprecate)
    _print_json(summary.model_dump(mode="json"))
    return 0


async def cmd_providers(args: argparse.Namespace, store: RecordStore) -> int:
    manager = ProviderManager(store)
    count = await manager.refresh()
    statuses = await manager.check_all_health() if args.health else manager.get_provider_statuses()
    print(f"Providers loaded: {count}")
    _print_json([s.model_dump(mode="json") for s in statuses])
    return 0


async def cmd_run_goal(args: argparse.Namespace, store: RecordStore) -> int:
    manager = ProviderManager(store)
    if await manager.refresh() == 0:
        print("Error: no AI providers configured and OPENAI_API_KEY is not set")
        return 1

    registry = AgentRegistry(manager, AccuracyScorer())
    runner = JobRunner(store, PipelineOrchestrator(registry, store))
    try:
        job_id = await runner.submit(args.goal, user_id=args.user)
        print(f"Job started: {job_id}")
        job = await runner.wait(job_id)
    finally:
        await manager.log_sink.stop()

    print(f"Status: {job.status.value}")
    if job.error:
        print(f"Error: {job.error}")
    if job.result:
        _print_json(job.result if args.full else {
            "requirements": len(job.result.get("requirements", [])),
            "heatmap": job.result.get("heatmap"),
            "validation": job.result.get("validation"),
            "attacks": len(job.result.get("attacks", [])),
            "duplicates": len(job.result.get("duplicates", [])),
        })
    return 0 if job.status.value == "COMPLETED" else 1


async def cmd_generate(args: argparse.Namespace, store: RecordStore) -> int:
    manager = ProviderManager(store)
    if await manager.refresh() == 0:
        print("Error: no AI providers configured and OPENAI_API_KEY is not set")
        return 1

    config = AutonomousGenerationConfig(
        industry=args.industry,
        system_type=args.system_type,
        organization_maturity=args.maturity,
        regulation_level=args.regulation,
        include_non_functional=not args.no_nfr,
        include_security_requirements=not args.no_security,
        max_requirements=args.max,
    )
    generator = AutonomousGenerator(PipelineOrchestrator(AgentRegistry(manager, AccuracyScorer()), store))
    try:
        result = await generator.generate(config, user_id=args.user)
    except ReqAgentError as e:
        print(f"Error: {e}")
        return 1
    finally:
        await manager.log_sink.stop()

    _print_json({
        "total_generated": result.total_generated,
        "requirements": [
            {"title": c.title, "type": c.type, "category": c.category, "content": c.content}
            for c in result.requirements
        ],
    })
    return 0


COMMANDS = {
    "score": cmd_score,
    "check-duplicate": cmd_check_duplicate,
    "scan-duplicates": cmd_scan_duplicates,
    "providers": cmd_providers,
    "run-goal": cmd_run_goal,
    "generate": cmd_generate,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reqagent",
        description="Requirement engine: provider failover, agents, scoring and duplicate detection",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Use an empty in-memory store instead of MongoDB",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    score = subparsers.add_parser("score", help="Score one requirement with the accuracy heatmap")
    score.add_argument("--title", required=True)
    score.add_argument("--content", default="")
    score.add_argument("--industry", default=None, help="e.g. finance, healthcare")
    score.add_argument("--category", default=None)
    score.add_argument("--type", default=None, help="FUNCTIONAL, NON_FUNCTIONAL, ...")
    score.add_argument("--confidence", type=float, default=0.7)

    check = subparsers.add_parser("check-duplicate", help="Check a title against stored requirements")
    check.add_argument("--title", required=True)
    check.add_argument("--content", default=None)

    scan = subparsers.add_parser("scan-duplicates", help="Cluster duplicate requirements")
    scan.add_argument(
        "--deprecate",
        action="store_true",
        help="Mark later duplicates as DEPRECATED",
    )

    providers = subparsers.add_parser("providers", help="List configured AI providers")
    providers.add_argument("--health", action="store_true", help="Probe each provider")

    run_goal = subparsers.add_parser("run-goal", help="Run the goal-driven generation job")
    run_goal.add_argument("goal")
    run_goal.add_argument("--user", default=None, help="Creator id stored on the job")
    run_goal.add_argument("--full", action="store_true", help="Print the full job result")

    generate = subparsers.add_parser("generate", help="Generate requirements from an industry profile")
    generate.add_argument("--industry", required=True, help="e.g. finance, healthcare")
    generate.add_argument("--system-type", required=True, help="SAAS, INTERNAL, B2C, B2B")
    generate.add_argument("--maturity", default="MID", help="STARTUP, MID, ENTERPRISE")
    generate.add_argument("--regulation", default="MEDIUM", help="HIGH, MEDIUM, LOW")
    generate.add_argument("--max", type=int, default=20, help="Maximum number of requirements")
    generate.add_argument("--no-nfr", action="store_true", help="Skip non-functional requirements")
    generate.add_argument("--no-security", action="store_true", help="Skip security requirements")
    generate.add_argument("--user", default=None, help="User id stored on audit rows")

    return parser


async def run(args: argparse.Namespace) -> int:
    if args.command == "score":
        return await cmd_score(args, None)

    store = await _open_store(args.memory)
    try:
        return await COMMANDS[args.command](args, store)
    finally:
        await _close_store(store)


def main(argv=None) -> int:
    """Console entry point."""
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else settings.log_level)
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
