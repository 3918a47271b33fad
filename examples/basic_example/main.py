"""
Basic example: capture a cProfile trace around one training-like step.

Prerequisites:
    pip install tracecapture
"""

import asyncio
import logging

from tracecapture import CaptureConfig, SessionManager
from tracecapture.infra.utils import logger

logger.setLevel(logging.INFO)


def matrix_multiply(n: int) -> list[list[int]]:
    a = [[i + j for j in range(n)] for i in range(n)]
    b = [[i * j for j in range(n)] for i in range(n)]
    return [[sum(a[i][k] * b[k][j] for k in range(n)) for j in range(n)] for i in range(n)]


async def fetch_and_multiply() -> None:
    await asyncio.sleep(0.01)
    matrix_multiply(60)


def main():
    manager = SessionManager.from_config(CaptureConfig(output_dir=".traces"))

    # Synchronous work
    path = manager.capture_trace_sync("matmul", lambda: matrix_multiply(60))
    print(f"Trace written to {path}")

    # Asynchronous work
    path = manager.capture_trace_sync("async-matmul", fetch_and_multiply)
    print(f"Trace written to {path}")


if __name__ == "__main__":
    main()
