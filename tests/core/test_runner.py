"""Tests for replaying suites against a browser engine."""

import pytest

from llmtestkit.core.testkit_core.commands.models import Command
from llmtestkit.core.testkit_core.runner.runner import TestRunner
from llmtestkit.core.testkit_core.suites.models import ExecutionStatus, TestSuite
from llmtestkit.core.testkit_core.suites.store import ExecutionStore


class FakeEngine:
    """Records calls; optionally fails on one method."""

    def __init__(self, fail_on=None, fail_start=False):
        self.fail_on = fail_on
        self.fail_start = fail_start
        self.calls = []
        self.console_logs = ["[log] page loaded"]
        self.closed = False

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name == self.fail_on:
            raise RuntimeError(f"{name} timed out")

    async def start(self):
        if self.fail_start:
            raise RuntimeError("browser not installed")
        self.calls.append(("start",))

    async def navigate(self, url):
        self._record("navigate", url)

    async def click(self, selector):
        self._record("click", selector)

    async def fill(self, selector, value):
        self._record("fill", selector, value)

    async def select(self, selector, value):
        self._record("select", selector, value)

    async def hover(self, selector):
        self._record("hover", selector)

    async def press(self, key):
        self._record("press", key)

    async def assert_text(self, selector, text):
        self._record("assert_text", selector, text)

    async def assert_url(self, url):
        self._record("assert_url", url)

    async def wait_for_selector(self, selector):
        self._record("wait_for_selector", selector)

    async def wait(self, milliseconds):
        self._record("wait", milliseconds)

    async def screenshot(self, path, selector=None):
        self._record("screenshot", path.name, selector)

    async def close(self):
        self.closed = True


def make_suite(commands):
    return TestSuite(
        version=3,
        name="Checkout",
        nlp_input="check out",
        generated_code="",
        llm_provider="mock",
        llm_model="mock-playwright",
        commands=commands,
    )


class TestTestRunner:
    """Test command dispatch and execution records."""

    def setup_method(self):
        """Set up test fixtures."""
        self.executions = ExecutionStore()

    def runner_for(self, engine, tmp_path):
        return TestRunner(executions=self.executions, screenshot_dir=tmp_path, engine_factory=lambda: engine)

    @pytest.mark.asyncio
    async def test_passing_run(self, tmp_path):
        """Test that every command type is dispatched in order."""
        engine = FakeEngine()
        suite = make_suite([
            Command(type="navigate", value="https://shop.example.com"),
            Command(type="hover", selector=".cart"),
            Command(type="type", selector="#qty", value="2"),
            Command(type="select", selector="#size", value="M"),
            Command(type="press", value="Enter"),
            Command(type="wait", value="0.5"),
            Command(type="wait", selector="#total"),
            Command(type="assert", selector="#total", value="$20"),
            Command(type="assert", value="https://shop.example.com/cart"),
            Command(type="screenshot"),
        ])

        execution = await self.runner_for(engine, tmp_path).run(suite)

        assert execution.status == ExecutionStatus.PASSED
        assert engine.calls == [
            ("start",),
            ("navigate", "https://shop.example.com"),
            ("hover", ".cart"),
            ("fill", "#qty", "2"),
            ("select", "#size", "M"),
            ("press", "Enter"),
            ("wait", 500),
            ("wait_for_selector", "#total"),
            ("assert_text", "#total", "$20"),
            ("assert_url", "https://shop.example.com/cart"),
            ("screenshot", "step-10.png", None),
        ]
        assert execution.screenshots == [str(tmp_path / "llmtestkit-3" / "step-10.png")]
        assert "[log] page loaded" in execution.logs
        assert execution.duration_ms is not None
        assert engine.closed
        assert self.executions.list_for_suite(suite.id)[0].status == ExecutionStatus.PASSED

    @pytest.mark.asyncio
    async def test_failing_command(self, tmp_path):
        """Test that a failing step stops the run with a failure screenshot."""
        engine = FakeEngine(fail_on="click")
        suite = make_suite([
            Command(type="navigate", value="https://shop.example.com"),
            Command(type="click", selector="#buy"),
            Command(type="press", value="Enter"),
        ])

        execution = await self.runner_for(engine, tmp_path).run(suite)

        assert execution.status == ExecutionStatus.FAILED
        assert execution.error.startswith("Command 2 (click) failed")
        assert ("press", "Enter") not in engine.calls
        assert engine.calls[-1][0] == "screenshot"
        assert engine.calls[-1][1].startswith("failure-")
        assert len(execution.screenshots) == 1
        assert engine.closed

    @pytest.mark.asyncio
    async def test_browser_start_failure(self, tmp_path):
        """Test that an engine that cannot start fails the run and is closed."""
        engine = FakeEngine(fail_start=True)
        execution = await self.runner_for(engine, tmp_path).run(
            make_suite([Command(type="navigate", value="https://a.com")])
        )

        assert execution.status == ExecutionStatus.FAILED
        assert execution.error == "Browser error: browser not installed"
        assert engine.closed

    @pytest.mark.asyncio
    async def test_empty_suite_skipped(self, tmp_path):
        """Test that a suite without commands is skipped without a browser."""
        created = []
        runner = TestRunner(executions=self.executions, screenshot_dir=tmp_path,
                            engine_factory=lambda: created.append(1))

        execution = await runner.run(make_suite([]))

        assert execution.status == ExecutionStatus.SKIPPED
        assert created == []

    @pytest.mark.asyncio
    async def test_invalid_commands_fail_before_browser(self, tmp_path):
        """Test that stored commands are validated before replay."""
        engine = FakeEngine()
        execution = await self.runner_for(engine, tmp_path).run(make_suite([Command(type="click")]))

        assert execution.status == ExecutionStatus.FAILED
        assert "requires a selector" in execution.error
        assert engine.calls == []

    @pytest.mark.asyncio
    async def test_named_screenshot(self, tmp_path):
        """Test that the screenshot path option names the file."""
        engine = FakeEngine()
        suite = make_suite([Command(type="screenshot", selector="#card", options={"path": "../card.png"})])

        execution = await self.runner_for(engine, tmp_path).run(suite)

        assert engine.calls[-1] == ("screenshot", "card.png", "#card")
        assert execution.screenshots == [str(tmp_path / "llmtestkit-3" / "card.png")]
