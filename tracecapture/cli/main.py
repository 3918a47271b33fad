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
Description: tracecapture command line entry point.

Usage:
    tracecapture capture [options] -- script.py [script args...]
"""

import argparse
import sys
from typing import Optional

import tracecapture
from tracecapture.cli.capture import add_capture_parser


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tracecapture",
        description="Capture a profiling trace around a Python script.",
    )
    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"%(prog)s {tracecapture.__version__}",
    )
    subparsers = parser.add_subparsers(dest="command")
    add_capture_parser(subparsers)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Parse arguments and dispatch to the selected subcommand.

    Everything after a `--` separator is handed to the subcommand untouched
    as `args.user_command`.
    """
    if argv is None:
        argv = sys.argv[1:]

    if "--" in argv:
        split = argv.index("--")
        own_args, user_command = argv[:split], argv[split + 1:]
    else:
        own_args, user_command = argv, []

    parser = create_parser()
    args = parser.parse_args(own_args)

    if args.command is None:
        parser.print_help()
        return 0

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    args.user_command = user_command
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
