"""Render browser commands as a pytest-playwright test module."""

import re
from typing import List, Optional, Sequence

from .models import Command, CommandType

INDENT = "    "
DEFAULT_TEST_NAME = "Generated Test"
DEFAULT_SCREENSHOT_PATH = "screenshot.png"

IMPORTS = "from playwright.sync_api import Page, expect\n\n\n"


def _lit(value: Optional[str]) -> str:
    """Render a Python string literal."""
    return repr("" if value is None else value)


def function_name_for(test_name: str) -> str:
    """Turn a free-form test name into a pytest function name."""
    slug = re.sub(r"[^0-9a-zA-Z]+", "_", test_name).strip("_").lower()
    return f"test_{slug or 'generated'}"


class CodeCompiler:
    """Deterministic command-list to automation-script compiler.

    Never raises for an unmapped command type: it becomes a comment line so
    that code generation stays forward compatible with new command types.
    """

    def compile(
        self,
        commands: Sequence[Command],
        test_name: str = DEFAULT_TEST_NAME,
        include_imports: bool = True,
    ) -> str:
        """Compile commands into a test module.

        Args:
            commands: Validated commands in execution order
            test_name: Human-readable test name
            include_imports: Whether to emit the playwright import line

        Returns:
            Python source text
        """
        code = IMPORTS if include_imports else ""

        code += f"def {function_name_for(test_name)}(page: Page):\n"
        code += f"{INDENT}{_lit(test_name)}\n"

        for command in commands:
            code += "\n"
            code += self.command_to_code(command)

        return code

    def command_to_code(self, command: Command) -> str:
        """Convert a single command to source lines."""
        lines: List[str] = []

        if command.description:
            for line in command.description.splitlines() or [""]:
                lines.append(f"# {line}".rstrip())

        lines.append(self._action_line(command))

        return "".join(f"{INDENT}{line}\n" for line in lines)

    def _action_line(self, cmd: Command) -> str:
        selector = _lit(cmd.selector)
        value = _lit(cmd.value)

        if cmd.type == CommandType.NAVIGATE.value:
            return f"page.goto({value})"

        elif cmd.type == CommandType.CLICK.value:
            return f"page.click({selector})"

        elif cmd.type == CommandType.HOVER.value:
            return f"page.hover({selector})"

        elif cmd.type in (CommandType.FILL.value, CommandType.TYPE.value):
            return f"page.fill({selector}, {value})"

        elif cmd.type == CommandType.ASSERT.value:
            if cmd.selector:
                return f"expect(page.locator({selector})).to_contain_text({value})"
            return f"expect(page).to_have_url({value})"

        elif cmd.type == CommandType.WAIT.value:
            if cmd.selector:
                return f"page.wait_for_selector({selector})"
            milliseconds = wait_milliseconds(cmd.value)
            if milliseconds is None:
                return f"# Unrecognized wait duration: {cmd.value!r}"
            return f"page.wait_for_timeout({milliseconds})"

        elif cmd.type == CommandType.SCREENSHOT.value:
            path = _lit((cmd.options or {}).get("path", DEFAULT_SCREENSHOT_PATH))
            if cmd.selector:
                return f"page.locator({selector}).screenshot(path={path})"
            return f"page.screenshot(path={path}, full_page=True)"

        elif cmd.type == CommandType.SELECT.value:
            return f"page.select_option({selector}, {value})"

        elif cmd.type == CommandType.PRESS.value:
            return f"page.keyboard.press({value})"

        return f"# Unknown command type: {cmd.type}"


def wait_milliseconds(value: Optional[str]) -> Optional[int]:
    """Convert a wait value in seconds ("2", "1.5", "3s") to milliseconds."""
    if value is None:
        return None
    match = re.fullmatch(r"\s*(\d+(?:\.\d+)?)\s*s?\s*", value)
    if not match:
        return None
    return int(float(match.group(1)) * 1000)
