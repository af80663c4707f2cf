"""Browser command models, validation and code generation."""

from .models import (
    Command,
    CommandType,
    ParseResult,
    Question,
    QuestionOption,
    QuestionType,
    Questionnaire,
)
from .validator import CommandValidator
from .compiler import CodeCompiler

__all__ = [
    "Command",
    "CommandType",
    "ParseResult",
    "Question",
    "QuestionOption",
    "QuestionType",
    "Questionnaire",
    "CommandValidator",
    "CodeCompiler",
]
