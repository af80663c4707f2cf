"""Structural validation of parsed browser commands."""

import logging
from typing import Dict, Iterable, Sequence, Tuple

from ..errors import CommandValidationError
from .models import Command, CommandType, ParseResult

logger = logging.getLogger(__name__)


# type -> (required fields, fields of which at least one is required)
REQUIRED_FIELDS: Dict[CommandType, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    CommandType.NAVIGATE: (("value",), ()),
    CommandType.CLICK: (("selector",), ()),
    CommandType.HOVER: (("selector",), ()),
    CommandType.FILL: (("selector", "value"), ()),
    CommandType.TYPE: (("selector", "value"), ()),
    CommandType.SELECT: (("selector", "value"), ()),
    CommandType.ASSERT: (("value",), ()),
    CommandType.WAIT: ((), ("selector", "value")),
    CommandType.SCREENSHOT: ((), ()),
    CommandType.PRESS: (("value",), ()),
}


def _present(command: Command, field_name: str) -> bool:
    value = getattr(command, field_name)
    return value is not None and str(value).strip() != ""


class CommandValidator:
    """Enforces the per-type required-field contract before commands are trusted."""

    def validate(self, commands: Sequence[Command]) -> None:
        """Validate commands, failing fast on the first violation.

        Args:
            commands: Parsed commands in execution order

        Raises:
            CommandValidationError: If a command is of an unknown type or is
                missing a required field
        """
        for index, command in enumerate(commands):
            self.validate_command(command, index)

        logger.debug(f"Validated {len(commands)} commands")

    def validate_command(self, command: Command, index: int = 0) -> None:
        """Validate a single command."""
        try:
            command_type = CommandType(command.type)
        except ValueError:
            raise CommandValidationError(
                f"Command {index + 1}: unknown command type '{command.type}' "
                f"(expected one of: {', '.join(CommandType.values())})",
                command_type=command.type,
                field="type",
                index=index,
            )

        required, any_of = REQUIRED_FIELDS[command_type]

        for field_name in required:
            if not _present(command, field_name):
                raise CommandValidationError(
                    f"Command {index + 1}: {command_type.value} command requires a {field_name}",
                    command_type=command_type.value,
                    field=field_name,
                    index=index,
                )

        if any_of and not any(_present(command, name) for name in any_of):
            raise CommandValidationError(
                f"Command {index + 1}: {command_type.value} command requires "
                f"either a {' or a '.join(any_of)}",
                command_type=command_type.value,
                field="|".join(any_of),
                index=index,
            )

    def validate_result(self, result: ParseResult) -> None:
        """Validate a parse result that is about to be compiled or executed.

        A clarification result is not a command list: handing one to the
        compiler would silently produce an empty script.

        Raises:
            CommandValidationError: If the result carries a questionnaire
                instead of commands, or if any command is invalid
        """
        if result.questionnaire is not None and not result.has_commands():
            raise CommandValidationError(
                "Parse result is a clarification questionnaire, not a command list"
            )
        self.validate(result.commands)

    def invalid_commands(self, commands: Iterable[Command]) -> Dict[int, str]:
        """Collect every violation without raising. Used for reporting."""
        problems = {}
        for index, command in enumerate(commands):
            try:
                self.validate_command(command, index)
            except CommandValidationError as e:
                problems[index] = str(e)
        return problems
