"""Test suite and execution records."""

from datetime import datetime, UTC
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from ..commands.models import Command


class TestSuite(BaseModel):
    """A saved, versioned test generated from natural language."""

    __test__ = False

    id: str = Field(default_factory=lambda: str(uuid4()))
    version: int
    name: str
    description: str = ""
    nlp_input: str
    generated_code: str
    llm_provider: str
    llm_model: str
    commands: List[Command] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class TestExecution(BaseModel):
    """One run of a suite against a real browser."""

    __test__ = False

    id: str = Field(default_factory=lambda: str(uuid4()))
    suite_id: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    screenshots: List[str] = Field(default_factory=list)
    logs: List[str] = Field(default_factory=list)
    error: Optional[str] = None
