#!/usr/bin/env python3
# backend/workers/pos_sync_worker.py

"""
POS Sync Worker

Runs the Celery worker that executes outbound POS sync tasks on the
high, default and low lanes.

Usage:
    python -m workers.pos_sync_worker [--queues high,default] [--concurrency 4]
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import argparse
import logging
from typing import List, Optional

from core.config import settings
from modules.pos.tasks.celery_config import celery_app

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

DEFAULT_QUEUES = "high,default,low"


def build_worker_argv(args: Optional[List[str]] = None) -> List[str]:
    """Translate command-line options into Celery worker arguments"""
    parser = argparse.ArgumentParser(description="Run the POS sync worker")
    parser.add_argument("--queues", default=DEFAULT_QUEUES)
    parser.add_argument("--concurrency", type=int, default=None)
    parser.add_argument("--loglevel", default=settings.log_level.upper())
    options = parser.parse_args(args)

    argv = [
        "worker",
        f"--queues={options.queues}",
        f"--loglevel={options.loglevel}",
        "--hostname=pos-sync@%h",
    ]
    if options.concurrency:
        argv.append(f"--concurrency={options.concurrency}")
    return argv


def main(args: Optional[List[str]] = None):
    """Run the POS sync worker"""
    argv = build_worker_argv(args)
    logger.info(f"Starting POS sync worker: {' '.join(argv)}")

    try:
        celery_app.worker_main(argv)
    except KeyboardInterrupt:
        logger.info("Worker stopped by user")
    except Exception as e:
        logger.error(f"Worker error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
