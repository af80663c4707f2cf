"""Replays a saved suite's commands against a browser engine."""

import logging
import time
from datetime import datetime, UTC
from pathlib import Path
from typing import Callable, List, Optional

from ..commands.compiler import wait_milliseconds
from ..commands.models import Command, CommandType
from ..commands.validator import CommandValidator
from ..errors import CommandExecutionError, CommandValidationError
from ..suites.models import ExecutionStatus, TestExecution, TestSuite
from ..suites.store import ExecutionStore
from .engine import BrowserEngine, PlaywrightEngine

logger = logging.getLogger(__name__)

SUITE_DIR_PREFIX = "llmtestkit"


class TestRunner:
    """Runs suites and records a TestExecution for every run.

    The engine is always closed, whatever the outcome; a failing command gets
    a full-page failure screenshot before the engine goes away.
    """

    __test__ = False

    def __init__(
        self,
        executions: Optional[ExecutionStore] = None,
        screenshot_dir: Path = Path("data") / "screenshots",
        engine_factory: Optional[Callable[[], BrowserEngine]] = None,
        validator: Optional[CommandValidator] = None,
    ):
        self.executions = executions or ExecutionStore()
        self.screenshot_dir = Path(screenshot_dir)
        self.engine_factory = engine_factory or PlaywrightEngine
        self.validator = validator or CommandValidator()

    async def run(self, suite: TestSuite) -> TestExecution:
        """Run a suite.

        Args:
            suite: Suite whose stored commands are replayed

        Returns:
            The completed execution record
        """
        execution = self.executions.save(TestExecution(suite_id=suite.id))
        started = time.monotonic()
        suite_dir = self.screenshot_dir / f"{SUITE_DIR_PREFIX}-{suite.version}"
        logs: List[str] = []

        logger.info(f"Running test suite v{suite.version}: {suite.name}")

        if not suite.commands:
            execution.status = ExecutionStatus.SKIPPED
            execution.error = "Suite has no commands to replay"
            return self._finish(execution, started, logs)

        try:
            self.validator.validate(suite.commands)
        except CommandValidationError as e:
            execution.status = ExecutionStatus.FAILED
            execution.error = str(e)
            return self._finish(execution, started, logs)

        engine = self.engine_factory()
        try:
            await engine.start()
            for index, command in enumerate(suite.commands):
                logs.append(f"Command {index + 1}: {command.description or command.type}")
                try:
                    await self.execute_command(engine, command, index, suite_dir, execution.screenshots)
                except Exception as e:
                    raise CommandExecutionError(index, command.type, e) from e

            execution.status = ExecutionStatus.PASSED

        except CommandExecutionError as e:
            logger.warning(str(e))
            execution.status = ExecutionStatus.FAILED
            execution.error = str(e)
            await self._failure_screenshot(engine, suite_dir, execution)

        except Exception as e:
            logger.error(f"Browser failed during suite v{suite.version}: {e}")
            execution.status = ExecutionStatus.FAILED
            execution.error = f"Browser error: {e}"

        finally:
            logs.extend(getattr(engine, "console_logs", []))
            try:
                await engine.close()
            except Exception as e:
                logger.warning(f"Failed to close browser: {e}")

        return self._finish(execution, started, logs)

    async def execute_command(
        self,
        engine: BrowserEngine,
        command: Command,
        index: int,
        suite_dir: Path,
        screenshots: List[str],
    ) -> None:
        """Dispatch one command to the engine."""
        cmd_type = command.type

        if cmd_type == CommandType.NAVIGATE:
            await engine.navigate(command.value)
        elif cmd_type == CommandType.CLICK:
            await engine.click(command.selector)
        elif cmd_type == CommandType.HOVER:
            await engine.hover(command.selector)
        elif cmd_type in (CommandType.FILL, CommandType.TYPE):
            await engine.fill(command.selector, command.value)
        elif cmd_type == CommandType.SELECT:
            await engine.select(command.selector, command.value)
        elif cmd_type == CommandType.PRESS:
            await engine.press(command.value)
        elif cmd_type == CommandType.ASSERT:
            if command.selector:
                await engine.assert_text(command.selector, command.value)
            else:
                await engine.assert_url(command.value)
        elif cmd_type == CommandType.WAIT:
            if command.selector:
                await engine.wait_for_selector(command.selector)
            else:
                milliseconds = wait_milliseconds(command.value)
                if milliseconds is None:
                    raise ValueError(f"Unrecognized wait duration: {command.value!r}")
                await engine.wait(milliseconds)
        elif cmd_type == CommandType.SCREENSHOT:
            name = (command.options or {}).get("path") or f"step-{index + 1}.png"
            path = suite_dir / Path(name).name
            await engine.screenshot(path, selector=command.selector)
            screenshots.append(str(path))
        else:
            raise ValueError(f"Unknown command type: {cmd_type}")

    async def _failure_screenshot(self, engine: BrowserEngine, suite_dir: Path, execution: TestExecution) -> None:
        path = suite_dir / f"failure-{int(time.time() * 1000)}.png"
        try:
            await engine.screenshot(path)
        except Exception as e:
            logger.warning(f"Failed to capture failure screenshot: {e}")
            return
        execution.screenshots.append(str(path))

    def _finish(self, execution: TestExecution, started: float, logs: List[str]) -> TestExecution:
        execution.completed_at = datetime.now(UTC)
        execution.duration_ms = int((time.monotonic() - started) * 1000)
        execution.logs.extend(logs)
        self.executions.save(execution)

        logger.info(f"Execution {execution.id} {execution.status.value} in {execution.duration_ms}ms")
        return execution
