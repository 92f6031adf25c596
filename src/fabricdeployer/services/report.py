"""Deployment run report service."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class ReportService:
    """Collects run metadata and per-operation outcomes into a JSON report."""

    def __init__(self, report_file: Optional[str], logger):
        self.report_file = report_file
        self.logger = logger
        self.report: Dict[str, Any] = {
            "status": "running",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "metadata": {},
            "connection": None,
            "operations": [],
            "error": None,
        }

    def start_run(self, metadata: Dict[str, Any]):
        self.report["status"] = "running"
        self.report["started_at"] = self._now()
        self.report["metadata"] = metadata
        self.write()

    def set_plan(self, operations: List[Dict[str, Any]]):
        self.report["operations"] = [
            dict(operation, index=index, status="pending", started_at=None, finished_at=None, error=None)
            for index, operation in enumerate(operations)
        ]
        self.write()

    def set_connection(self, endpoint: str, reused: bool):
        self.report["connection"] = {"endpoint": endpoint, "reused": reused}
        self.write()

    def operation_started(self, index: int):
        operation = self._find(index)
        if operation is not None:
            operation["status"] = "running"
            operation["started_at"] = self._now()
            self.write()

    def operation_finished(self, index: int, status: str, error: Optional[str] = None):
        operation = self._find(index)
        if operation is None:
            return
        operation["status"] = status
        operation["finished_at"] = self._now()
        operation["error"] = error
        self.write()

    def finalize(self, status: str, error: Optional[str] = None):
        self.report["status"] = status
        self.report["finished_at"] = self._now()
        if self.report.get("started_at"):
            started_at = datetime.fromisoformat(self.report["started_at"])
            finished_at = datetime.fromisoformat(self.report["finished_at"])
            self.report["duration_seconds"] = (finished_at - started_at).total_seconds()
        self.report["error"] = error
        self.write()

    def write(self):
        if not self.report_file:
            return

        directory = os.path.dirname(self.report_file) or "."
        os.makedirs(directory, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(prefix="deploy-report-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.report, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.report_file)
        except OSError as exc:
            self.logger.warning("Could not write report file '%s': %s", self.report_file, exc)
            try:
                os.remove(temp_path)
            except OSError:
                pass

    def _find(self, index: int) -> Optional[Dict[str, Any]]:
        operations = self.report["operations"]
        if 0 <= index < len(operations):
            return operations[index]
        return None

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
