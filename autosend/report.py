"""
Result log: one line per job, no header.

    OK|FAIL,from,to,hash,"error"
"""

import time
from pathlib import Path
from typing import Iterable, Optional, Union

from autosend.schema import JobResult


def format_result_line(result: JobResult) -> str:
    status = "OK" if result.ok else "FAIL"
    error = (result.error or "").replace('"', '""').replace("\r", " ").replace("\n", " ")
    return f'{status},{result.sender},{result.recipient},{result.tx_hash or ""},"{error}"'


def format_results(results: Iterable[JobResult]) -> str:
    return "\n".join(format_result_line(r) for r in results)


def default_results_path(directory: Optional[Path] = None) -> Path:
    return (directory or Path.cwd()) / f"send_results_{int(time.time() * 1000)}.csv"


def write_results(results: Iterable[JobResult], path: Optional[Union[str, Path]] = None) -> Path:
    out_path = Path(path) if path else default_results_path()
    out_path.write_text(format_results(results), encoding="utf-8")
    return out_path
