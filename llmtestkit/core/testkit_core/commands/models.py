"""Data models for browser commands, questionnaires and parse results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CommandType(str, Enum):
    """Browser actions the model is allowed to emit."""
    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    FILL = "fill"
    ASSERT = "assert"
    WAIT = "wait"
    SCREENSHOT = "screenshot"
    SELECT = "select"
    HOVER = "hover"
    PRESS = "press"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


class Command(BaseModel):
    """A single browser automation step.

    ``type`` is kept as a plain string: model output is untrusted, and the
    closed set of types is enforced by the CommandValidator rather than at
    deserialization time.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str
    selector: Optional[str] = None
    value: Optional[str] = None
    options: Optional[Dict[str, Any]] = None
    description: Optional[str] = None

    @field_validator("value", "selector", mode="before")
    @classmethod
    def _coerce_scalar(cls, v: Any) -> Any:
        # Models regularly emit {"type": "wait", "value": 2}
        if isinstance(v, bool):
            return str(v).lower()
        if isinstance(v, (int, float)):
            return str(v)
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, dropping unset fields."""
        return self.model_dump(exclude_none=True)


class QuestionType(str, Enum):
    """Input widget a clarification question asks for."""
    SINGLE_CHOICE = "single-choice"
    MULTI_CHOICE = "multi-choice"
    TEXT_INPUT = "text-input"


class QuestionOption(BaseModel):
    value: str
    label: str


class Question(BaseModel):
    """One question in a clarification questionnaire."""

    id: str
    text: str
    type: QuestionType
    required: bool = False
    options: Optional[List[QuestionOption]] = None
    placeholder: Optional[str] = None
    multiline: Optional[bool] = None


class Questionnaire(BaseModel):
    """Structured clarification request returned for vague input."""

    message: str
    questions: List[Question] = Field(default_factory=list)


@dataclass
class ParseResult:
    """Outcome of parsing one natural-language request.

    Exactly one of ``commands`` or ``questionnaire`` is meaningful; callers
    branch on which is present.
    """
    commands: List[Command]
    confidence: float
    raw_response: str
    questionnaire: Optional[Questionnaire] = None
    tokens_used: Optional[int] = None
    cost: Optional[float] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    error_message: Optional[str] = None  # legacy {"error": "..."} responses
    anomaly: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def has_commands(self) -> bool:
        """Check if any commands were parsed."""
        return len(self.commands) > 0

    def needs_clarification(self) -> bool:
        """Check if this result asks the user for more detail."""
        return not self.has_commands() and self.questionnaire is not None

    def is_empty(self) -> bool:
        """Check for the forbidden state: no commands, no questionnaire, no error."""
        return (
            not self.has_commands()
            and self.questionnaire is None
            and not self.error_message
        )
