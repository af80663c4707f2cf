"""Saved test suites and execution history."""

from .models import ExecutionStatus, TestExecution, TestSuite
from .store import ExecutionStore, SuiteStore

__all__ = ["ExecutionStatus", "TestExecution", "TestSuite", "ExecutionStore", "SuiteStore"]
