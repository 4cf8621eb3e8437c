"""Tail of the newest platform log file."""
import os
from collections import deque
from typing import List

from pydantic import BaseModel


class LogTail(BaseModel):
    source: str
    lines: List[str] = []


def newest_log_file(logs_dir: str) -> str:
    """Path of the most recently modified file. Raises FileNotFoundError if there is none."""
    with os.scandir(logs_dir) as it:
        files = [e for e in it if e.is_file()]
    if not files:
        raise FileNotFoundError(f"no log files in {logs_dir}")
    return max(files, key=lambda e: e.stat().st_mtime).path


def tail_lines(path: str, count: int = 100) -> List[str]:
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return [line.rstrip("\n") for line in deque(f, maxlen=count)]


def tail_newest_log(logs_dir: str, count: int = 100) -> LogTail:
    path = newest_log_file(logs_dir)
    return LogTail(source=f"File: {os.path.basename(path)}", lines=tail_lines(path, count))
