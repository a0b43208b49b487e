"""命令行入口

python -m mentionbot.gateway serve               启动 HTTP 服务
python -m mentionbot.gateway poll-mentions       执行一次提及轮询并等待派发的任务结束
python -m mentionbot.gateway refresh-credentials 刷新 access token
python -m mentionbot.gateway run-task <task_id>  同步执行一次编排
python -m mentionbot.gateway list-tasks [status] 列出任务
"""

import argparse
import asyncio
import json
import sys

import structlog
from mentionbot.core.config import get_db_path, get_media_dir, get_media_public_url
from mentionbot.core.errors import PipelineError
from mentionbot.core.models import TaskStatus
from mentionbot.core.store import create_store_group
from mentionbot.social import SocialAPIError

from .middleware.logging_config import setup_logging
from .services.container import build_default_services

log = structlog.get_logger()


def _print_json(data) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


async def _run_command(args: argparse.Namespace) -> int:
    store_group = await create_store_group(
        get_db_path(),
        get_media_dir(),
        get_media_public_url(),
    )
    services = build_default_services(store_group)
    try:
        if args.command == "poll-mentions":
            result = await services.ingestor.poll()
            await services.dispatcher.drain()
            _print_json(result.model_dump())
        elif args.command == "refresh-credentials":
            refreshed = await services.credential_refresher.refresh()
            _print_json({"refreshed": refreshed})
            return 0 if refreshed else 1
        elif args.command == "run-task":
            outcome = await services.orchestrator.run(args.task_id)
            _print_json(outcome.model_dump(mode="json"))
            return 0 if outcome.status != TaskStatus.FAILED else 1
        elif args.command == "list-tasks":
            tasks = await store_group.task_store.list_tasks(args.status)
            _print_json(
                [
                    {
                        "task_id": t.task_id,
                        "mention_id": t.mention_id,
                        "status": t.status.value,
                        "attempts": t.attempts,
                        "error_message": t.error_message,
                        "updated_at": t.updated_at.isoformat(),
                    }
                    for t in tasks
                ]
            )
        return 0
    except (PipelineError, SocialAPIError) as e:
        log.error("command_failed", command=args.command, error=str(e))
        return 1
    finally:
        await services.aclose()
        await store_group.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mentionbot", description="提及回复任务引擎")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="启动 HTTP 服务")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    sub.add_parser("poll-mentions", help="执行一次提及轮询")
    sub.add_parser("refresh-credentials", help="刷新 access token")

    run_task = sub.add_parser("run-task", help="执行一次任务编排")
    run_task.add_argument("task_id")

    list_tasks = sub.add_parser("list-tasks", help="列出任务")
    list_tasks.add_argument(
        "status",
        nargs="?",
        choices=[s.value for s in TaskStatus],
        default=None,
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "serve":
        import uvicorn

        uvicorn.run("mentionbot.gateway.main:app", host=args.host, port=args.port)
        return 0

    setup_logging()
    return asyncio.run(_run_command(args))


if __name__ == "__main__":
    sys.exit(main())
