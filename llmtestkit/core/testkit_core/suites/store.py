"""JSON-file persistence for test suites and their executions."""

import json
import logging
import threading
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel

from ..commands.models import Command
from .models import TestExecution, TestSuite

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

SUITE_UPDATABLE_FIELDS = ("name", "description", "nlp_input", "generated_code", "commands")


class _JsonRecordFile(Generic[RecordT]):
    """Records kept in memory and mirrored to one JSON document (temp file + rename)."""

    def __init__(self, path: Optional[Path], model: Type[RecordT]):
        self.path = path
        self.model = model
        self.records: Dict[str, RecordT] = {}

        if path is not None and path.exists():
            with open(path, "r") as f:
                for raw in json.load(f):
                    record = model.model_validate(raw)
                    self.records[record.id] = record

    def flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".json.tmp")
        with open(temp_path, "w") as f:
            json.dump([r.model_dump(mode="json") for r in self.records.values()], f, indent=2)
        temp_path.replace(self.path)


class SuiteStore:
    """Versioned test suites.

    Versions are assigned as ``max(existing) + 1`` under a lock and never
    change afterwards, including on update.
    """

    FILE_NAME = "test_suites.json"

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize suite store.

        Args:
            data_dir: Directory for the suites file (in-memory if None)
        """
        self._lock = threading.Lock()
        path = Path(data_dir) / self.FILE_NAME if data_dir is not None else None
        self._file = _JsonRecordFile(path, TestSuite)

    def _next_version(self) -> int:
        return max((s.version for s in self._file.records.values()), default=0) + 1

    def create(
        self,
        name: str,
        nlp_input: str,
        generated_code: str,
        llm_provider: str,
        llm_model: str,
        description: str = "",
        commands: Optional[Sequence[Command]] = None,
    ) -> TestSuite:
        """Create and persist a new suite with the next version number."""
        with self._lock:
            suite = TestSuite(
                version=self._next_version(),
                name=name,
                description=description,
                nlp_input=nlp_input,
                generated_code=generated_code,
                llm_provider=llm_provider,
                llm_model=llm_model,
                commands=list(commands or []),
            )
            self._file.records[suite.id] = suite
            self._file.flush()

        logger.info(f"Created test suite v{suite.version}: {suite.name}")
        return suite

    def get(self, suite_id: str) -> Optional[TestSuite]:
        with self._lock:
            return self._file.records.get(suite_id)

    def get_by_version(self, version: int) -> Optional[TestSuite]:
        with self._lock:
            for suite in self._file.records.values():
                if suite.version == version:
                    return suite
        return None

    def list(self, limit: int = 100, offset: int = 0) -> List[TestSuite]:
        """Suites ordered newest version first."""
        with self._lock:
            suites = sorted(self._file.records.values(), key=lambda s: s.version, reverse=True)
        return suites[offset:offset + limit]

    def update(self, suite_id: str, **updates: Any) -> Optional[TestSuite]:
        """Update editable fields of a suite.

        Args:
            suite_id: Suite to update
            **updates: Any of name, description, nlp_input, generated_code, commands

        Returns:
            The updated suite, or None if it does not exist

        Raises:
            ValueError: If a non-editable field is passed
        """
        invalid = set(updates) - set(SUITE_UPDATABLE_FIELDS)
        if invalid:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(invalid))}")

        changes = {k: v for k, v in updates.items() if v is not None}

        with self._lock:
            existing = self._file.records.get(suite_id)
            if existing is None:
                return None
            if not changes:
                return existing

            data = existing.model_dump()
            data.update(changes)
            data["updated_at"] = datetime.now(UTC)
            suite = TestSuite.model_validate(data)
            self._file.records[suite_id] = suite
            self._file.flush()

        logger.info(f"Updated test suite v{suite.version}: {', '.join(sorted(changes))}")
        return suite

    def delete(self, suite_id: str) -> bool:
        with self._lock:
            suite = self._file.records.pop(suite_id, None)
            if suite is None:
                return False
            self._file.flush()

        logger.info(f"Deleted test suite v{suite.version}: {suite.name}")
        return True


class ExecutionStore:
    """Execution records, one per test run."""

    FILE_NAME = "test_executions.json"

    def __init__(self, data_dir: Optional[Path] = None):
        self._lock = threading.Lock()
        path = Path(data_dir) / self.FILE_NAME if data_dir is not None else None
        self._file = _JsonRecordFile(path, TestExecution)

    def save(self, execution: TestExecution) -> TestExecution:
        """Insert or replace an execution record."""
        with self._lock:
            self._file.records[execution.id] = execution
            self._file.flush()
        return execution

    def get(self, execution_id: str) -> Optional[TestExecution]:
        with self._lock:
            return self._file.records.get(execution_id)

    def list_for_suite(self, suite_id: str) -> List[TestExecution]:
        """Executions of a suite, most recent first."""
        with self._lock:
            executions = [e for e in self._file.records.values() if e.suite_id == suite_id]
        return sorted(executions, key=lambda e: e.started_at, reverse=True)
