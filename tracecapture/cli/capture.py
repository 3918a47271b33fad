# Copyright 2025 nCompass Technologies
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Description: `capture` subcommand, profiles one run of a Python script.
"""

import argparse
import asyncio
import logging
import runpy
import sys
from pathlib import Path
from typing import Callable

from tracecapture.backends import BACKENDS
from tracecapture.core.errors import WorkFunctionError
from tracecapture.core.pydantic import load_config
from tracecapture.core.session import Failure, SessionManager
from tracecapture.infra.utils import logger, set_log_level


def add_capture_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser(
        "capture",
        help="Run a Python script inside a profiling session",
        description="Run a Python script inside a profiling session and persist the trace. "
                    "Pass the script and its arguments after '--'.",
    )
    parser.add_argument("-n", "--name", default=None,
                        help="Trace label used in the artifact name (default: script name)")
    parser.add_argument("-c", "--config", default=None,
                        help="YAML file with capture settings")
    parser.add_argument("-o", "--output-dir", default=None,
                        help="Directory for trace artifacts")
    parser.add_argument("-b", "--backend", choices=sorted(BACKENDS), default=None,
                        help="Instrumentation backend")
    parser.add_argument("-z", "--compress", action="store_true", default=None,
                        help="Gzip the trace artifact")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    parser.set_defaults(func=run_capture_command)


def script_work_fn(script: str, script_args: list[str]) -> Callable[[], None]:
    """Build a work function running `script` as `__main__` with `script_args`.

    `sys.exit(0)` inside the script counts as success; any other exit status
    fails the capture with WorkFunctionError.
    """
    def work() -> None:
        saved_argv = sys.argv
        sys.argv = [script, *script_args]
        try:
            runpy.run_path(script, run_name="__main__")
        except SystemExit as exc:
            if exc.code not in (None, 0):
                raise WorkFunctionError(f"{script} exited with status {exc.code}") from exc
        finally:
            sys.argv = saved_argv
    return work


def run_capture_command(args: argparse.Namespace) -> int:
    """Run the capture subcommand.

    Returns:
        0 on success, 1 when the capture fails, 2 on invalid usage or config.
    """
    if args.verbose:
        logger.setLevel(logging.DEBUG)
    elif args.quiet:
        logger.setLevel(logging.ERROR)

    user_command = getattr(args, "user_command", [])
    if not user_command:
        logger.error("No script given. Usage: tracecapture capture [options] -- script.py [args...]")
        return 2

    script, script_args = user_command[0], user_command[1:]
    if not Path(script).is_file():
        logger.error(f"Script not found: {script}")
        return 2

    try:
        config = load_config(args.config, overrides={
            "output_dir": args.output_dir,
            "backend": args.backend,
            "compress": args.compress,
        })
    except (OSError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    if not (args.verbose or args.quiet):
        set_log_level(config.log_level)

    try:
        manager = SessionManager.from_config(config)
    except ImportError as e:
        logger.error(f"Backend '{config.backend}' is not available: {e}")
        return 2

    name = args.name or Path(script).stem
    try:
        result = asyncio.run(manager.try_capture_trace(name, script_work_fn(script, script_args)))
    except ValueError as e:
        logger.error(str(e))
        return 2

    if isinstance(result, Failure):
        logger.error(f"Capture failed during {result.stage.value}: {result.cause!r}")
        return 1

    print(result.path)
    return 0
