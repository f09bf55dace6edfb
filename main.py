#!/usr/bin/env python3
"""
Code Craft - עורך קוד והרצה מרחוק
נקודת הכניסה לשורת הפקודה: הרצת קובץ דרך ה-store, העדפות, ושפות.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import http_async
import observability
from config import config
from services.code_execution_service import CodeExecutionService
from services.editor_store import EditorStore, TextBuffer
from services.languages import LANGUAGE_CONFIG
from services.preferences_storage import JsonFileStorage, KeyValueStorage, MemoryStorage


def _open_storage(path: Optional[str]) -> KeyValueStorage:
    target = path or config.PREFERENCES_PATH
    if target:
        return JsonFileStorage(target)
    return MemoryStorage()


def _build_execution_log(user_id: Optional[str]):
    if not user_id:
        return None
    from database import DatabaseManager, ExecutionLog, Repository

    manager = DatabaseManager()
    if manager.is_noop:
        print("warning: no database configured; execution will not be recorded", file=sys.stderr)
        return None
    return ExecutionLog(Repository(manager.db), user_id)


async def _run_file(args: argparse.Namespace) -> int:
    source = Path(args.file).read_text(encoding="utf-8")
    store = EditorStore(
        _open_storage(args.prefs),
        CodeExecutionService(),
        execution_log=_build_execution_log(args.user_id),
    )
    buffer = TextBuffer()
    store.attach_editor(buffer)
    if args.language and args.language != store.state.language:
        store.set_language(args.language)
    buffer.set_value(source)

    observability.bind_request_id(observability.generate_request_id())
    observability.bind_user_context(user_id=args.user_id)
    try:
        await store.run()
    finally:
        await http_async.close_session()

    state = store.state
    if state.error is not None:
        print(state.error, file=sys.stderr)
        return 1
    if state.output:
        print(state.output)
    return 0


async def _list_runtimes() -> int:
    try:
        runtimes = await CodeExecutionService().list_runtimes()
    finally:
        await http_async.close_session()
    for item in runtimes:
        print(f"{item.get('language', '?'):<14} {item.get('version', '?')}")
    return 0


def _prefs(args: argparse.Namespace) -> int:
    store = EditorStore(_open_storage(args.prefs))
    if args.theme:
        store.set_theme(args.theme)
    if args.font_size is not None:
        store.set_font_size(args.font_size)
    if args.language:
        store.set_language(args.language)
    state = store.state
    print(f"language:  {state.language}")
    print(f"theme:     {state.theme}")
    print(f"font size: {state.font_size}")
    return 0


def _languages() -> int:
    for spec in LANGUAGE_CONFIG.values():
        print(f"{spec.id:<12} {spec.label:<12} {spec.runtime.language} {spec.runtime.version}")
    return 0


def _init_db() -> int:
    from pymongo.errors import PyMongoError

    from database import DatabaseManager

    try:
        manager = DatabaseManager()
    except PyMongoError as e:
        print(f"cannot connect to MongoDB: {e}", file=sys.stderr)
        return 1
    if manager.is_noop:
        print("MONGODB_URL is not configured", file=sys.stderr)
        return 1
    try:
        failed = sorted(name for name, ok in manager.index_results.items() if not ok)
        if failed:
            print(f"index creation failed for: {', '.join(failed)}", file=sys.stderr)
            return 1
        print(f"indexes ensured on {config.DATABASE_NAME}")
        return 0
    finally:
        manager.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="code-craft", description="Run code through the remote execution API")
    parser.add_argument("--prefs", help="preferences JSON file (default: PREFERENCES_PATH)")
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="run a source file")
    run_p.add_argument("file")
    run_p.add_argument("-l", "--language", help="language id (default: saved preference)")
    run_p.add_argument("--user-id", help="record the execution for this user")

    prefs_p = sub.add_parser("prefs", help="show or change editor preferences")
    prefs_p.add_argument("--theme")
    prefs_p.add_argument("--font-size", type=int)
    prefs_p.add_argument("--language")

    sub.add_parser("languages", help="list supported languages")
    sub.add_parser("runtimes", help="list runtimes offered by the execution API")
    sub.add_parser("init-db", help="create MongoDB indexes")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    observability.setup_structlog_logging(config.LOG_LEVEL)
    observability.init_sentry()

    if args.command == "run":
        return asyncio.run(_run_file(args))
    if args.command == "runtimes":
        return asyncio.run(_list_runtimes())
    if args.command == "prefs":
        return _prefs(args)
    if args.command == "languages":
        return _languages()
    if args.command == "init-db":
        return _init_db()
    return 2


if __name__ == "__main__":
    sys.exit(main())
