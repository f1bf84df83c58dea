"""Result exporters: sorted file lists and run summaries.

An exporter is any callable taking a `CrawlReport`. The crawler calls it
exactly once per session and waits for it to return before going idle.
"""

from __future__ import annotations

import json
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, TextIO

from .types import CrawlReport
from .url import host_from_url


Exporter = Callable[[CrawlReport], Any]

ONION_SUFFIX = ".onion"


def export_host_label(url: str) -> str:
    """Filesystem-safe host label for export file names."""

    host = host_from_url(url)
    if host.endswith(ONION_SUFFIX):
        host = host[: -len(ONION_SUFFIX)]
    if not host:
        return "unknown"
    return "".join(char if (char.isalnum() or char in {".", "-", "_"}) else "_" for char in host)


def render_file_list(files: Iterable[str]) -> str:
    """Render files as a lexicographically sorted, newline-delimited list."""

    ordered = sorted(files)
    if not ordered:
        return ""
    return "\n".join(ordered) + "\n"


def write_file_list(files: Iterable[str], stream: TextIO) -> int:
    """Write the sorted list to an open text stream and return the line count."""

    content = render_file_list(files)
    stream.write(content)
    stream.flush()
    return content.count("\n")


class FileListExporter:
    """Persist each report as `crawl_<host>_<epoch-ms>.txt` plus a JSON summary."""

    def __init__(
        self,
        output_dir: str | Path,
        *,
        write_summary: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.write_summary = write_summary
        self._clock = clock
        self.last_paths: dict[str, str] = {}

    def __call__(self, report: CrawlReport) -> dict[str, str]:
        return self.export(report)

    def stem_for(self, report: CrawlReport) -> str:
        timestamp_ms = int(self._clock() * 1000)
        return f"crawl_{export_host_label(report.seed_url)}_{timestamp_ms}"

    def export(self, report: CrawlReport) -> dict[str, str]:
        """Write the report and return the written paths."""

        self.output_dir.mkdir(parents=True, exist_ok=True)
        stem = self.stem_for(report)

        list_path = self.output_dir / f"{stem}.txt"
        self._atomic_write_text(list_path, render_file_list(report.files))
        paths = {"file_list": str(list_path)}

        if self.write_summary:
            summary_path = self.output_dir / f"{stem}.json"
            self._atomic_write_json(summary_path, report.to_json())
            paths["summary"] = str(summary_path)

        self.last_paths = paths
        return paths

    @staticmethod
    def _atomic_write_text(path: Path, content: str) -> None:
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=path.name + ".",
            suffix=".tmp",
        )
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

    @classmethod
    def _atomic_write_json(cls, path: Path, payload: Mapping[str, Any]) -> None:
        content = json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n"
        cls._atomic_write_text(path, content)


class StreamExporter:
    """Write only the sorted file list to a text stream (e.g. stdout)."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def __call__(self, report: CrawlReport) -> int:
        return write_file_list(report.files, self.stream)


__all__ = [
    "Exporter",
    "FileListExporter",
    "StreamExporter",
    "export_host_label",
    "render_file_list",
    "write_file_list",
]
