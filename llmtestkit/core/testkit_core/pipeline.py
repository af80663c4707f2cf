"""Natural language to browser commands: the end-to-end request flow."""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .chat.context import ContextWindower
from .chat.store import ChatStore
from .commands.compiler import CodeCompiler, DEFAULT_TEST_NAME
from .commands.models import Command, ParseResult, Question, QuestionType, Questionnaire
from .commands.validator import CommandValidator
from .errors import (
    CommandExecutionError,
    CommandValidationError,
    ConfigurationError,
    ProviderUnavailableError,
    ResponseParseError,
)
from .llm.config import AdapterConfig
from .llm.factory import AdapterFactory
from .llm.prompts import PromptBuilder
from .llm.types import ParseContext
from .llm.usage_tracker import CostLedger

logger = logging.getLogger(__name__)

STATUS_COMMANDS = "commands"
STATUS_CLARIFICATION = "clarification"

GENERIC_CLARIFICATION = "I couldn't turn that into test steps. Please add a few more details."


def clarification_from_error(error_message: Optional[str]) -> Questionnaire:
    """Questionnaire synthesized for models that answer vague input with plain error text."""
    message = "Your request needs more details to generate reliable test commands."
    if error_message:
        message = f"{message} {error_message}"

    return Questionnaire(
        message=message,
        questions=[
            Question(
                id="target-url",
                text="Which page URL should the test start from?",
                type=QuestionType.TEXT_INPUT,
                required=True,
                placeholder="https://example.com",
            ),
            Question(
                id="steps",
                text="Which actions should the test perform, and what should it verify?",
                type=QuestionType.TEXT_INPUT,
                required=True,
                multiline=True,
                placeholder='Click "Login", fill the email field, verify the heading says "Welcome"',
            ),
        ],
    )


def describe_failure(exc: BaseException) -> str:
    """User-facing message for a failed request, one per failure kind."""
    if isinstance(exc, ConfigurationError):
        return f"Configuration error: {exc}. Check your LLM provider settings."
    if isinstance(exc, ProviderUnavailableError):
        provider = f" ({exc.provider})" if exc.provider else ""
        return f"The AI provider{provider} is unavailable: {exc}. Please try again later."
    if isinstance(exc, ResponseParseError):
        return f"The AI returned a malformed response: {exc.reason}"
    if isinstance(exc, CommandValidationError):
        return f"The AI produced an invalid command: {exc}"
    if isinstance(exc, CommandExecutionError):
        return f"Test step failed: {exc}"
    if isinstance(exc, ValueError):
        return f"Invalid request: {exc}"
    return f"Internal error: {exc}"


@dataclass
class ChatReply:
    """Outcome of one chat turn."""
    session_id: str
    status: str  # "commands" or "clarification"
    content: str
    result: ParseResult
    commands: List[Command] = field(default_factory=list)
    questionnaire: Optional[Questionnaire] = None
    generated_code: Optional[str] = None

    @property
    def is_clarification(self) -> bool:
        return self.status == STATUS_CLARIFICATION


class NLPPipeline:
    """Wires windowing, prompting, provider routing, validation and compilation.

    Every successful call ends in exactly one of two outcomes: validated
    commands, or a clarification questionnaire. Failures raise.
    """

    def __init__(
        self,
        factory: AdapterFactory,
        chat_store: Optional[ChatStore] = None,
        windower: Optional[ContextWindower] = None,
        validator: Optional[CommandValidator] = None,
        compiler: Optional[CodeCompiler] = None,
        prompt_builder: Optional[PromptBuilder] = None,
    ):
        self.factory = factory
        self.chat_store = chat_store or ChatStore()
        self.windower = windower or ContextWindower(self.chat_store)
        self.validator = validator or CommandValidator()
        self.compiler = compiler or CodeCompiler()
        self.prompt_builder = prompt_builder or PromptBuilder()

    @classmethod
    def from_config(cls, config: AdapterConfig, data_dir: Optional[Path] = None) -> "NLPPipeline":
        """Build a pipeline whose ledger and chat history live under ``data_dir``."""
        ledger = CostLedger(data_dir)
        return cls(AdapterFactory(config, ledger=ledger), chat_store=ChatStore(data_dir))

    @property
    def confidence_threshold(self) -> float:
        return self.factory.config.confidence_threshold

    @property
    def ledger(self) -> Optional[CostLedger]:
        return self.factory.ledger

    def primary_model(self) -> str:
        primary = self.factory.config.providers.get(self.factory.config.primary_provider)
        return (primary.model if primary else None) or "gpt-4"

    async def parse(self, user_input: str, context: Optional[ParseContext] = None) -> ParseResult:
        """Parse input into validated commands or a clarification.

        Raises:
            ValueError: If the input is blank
            ProviderUnavailableError: If the selected provider fails
            ResponseParseError: If the model output is malformed
            CommandValidationError: If a returned command is incomplete
        """
        if not user_input or not user_input.strip():
            raise ValueError("Input is required")

        adapter = await self.factory.get_primary_adapter()
        result = await adapter.parse(user_input, context)

        logger.info(
            f"Parsed with {result.provider}: {len(result.commands)} commands, "
            f"confidence {result.confidence:.2f}, {result.tokens_used} tokens, ${result.cost or 0:.6f}"
        )

        if result.has_commands():
            if result.confidence < self.confidence_threshold:
                logger.warning(
                    f"Commands returned below confidence threshold "
                    f"({result.confidence:.2f} < {self.confidence_threshold:.2f})"
                )
            self.validator.validate(result.commands)
            return result

        if result.questionnaire is not None:
            return result

        if result.error_message:
            logger.info("Synthesizing questionnaire from legacy error response")
            return replace(result, questionnaire=clarification_from_error(result.error_message))

        # No commands, questionnaire or error: never hand this back as success.
        logger.warning(f"Degenerate parse result converted to clarification: {result.anomaly}")
        return replace(
            result,
            questionnaire=clarification_from_error(None).model_copy(update={"message": GENERIC_CLARIFICATION}),
            anomaly=result.anomaly or "degenerate response",
        )

    def generate_code(
        self,
        commands: Sequence[Command],
        test_name: str = DEFAULT_TEST_NAME,
        include_imports: bool = True,
    ) -> str:
        """Validate then compile commands into a test script."""
        self.validator.validate(commands)
        return self.compiler.compile(commands, test_name=test_name, include_imports=include_imports)

    def compile_result(self, result: ParseResult, test_name: str = DEFAULT_TEST_NAME) -> str:
        """Compile a parse result, refusing clarification results."""
        self.validator.validate_result(result)
        return self.compiler.compile(result.commands, test_name=test_name)

    async def chat(
        self,
        message: str,
        session_id: Optional[str] = None,
        previous_commands: Sequence[Command] = (),
    ) -> ChatReply:
        """Process one chat turn with token-budgeted conversation history.

        Args:
            message: The user's message
            session_id: Existing session to continue (created if absent)
            previous_commands: Commands already accepted in this session; when
                empty, the commands of the latest assistant turn that produced
                any are used

        Returns:
            Reply with either commands and generated code, or a questionnaire
        """
        if not message or not message.strip():
            raise ValueError("Message is required")

        session = self.chat_store.get_or_create_session(session_id)
        model = self.primary_model()

        counter = self.windower.counter
        system_tokens = self.prompt_builder.system_prompt_tokens(lambda text: counter.count_tokens(text, model))
        message_tokens = counter.count_tokens(message, model)
        window = self.windower.get_context_window(session.id, model, system_tokens, message_tokens)
        if not previous_commands:
            previous_commands = self._latest_commands(session.id)

        self.chat_store.save_message(session.id, "user", message)

        context = ParseContext(
            previous_commands=tuple(previous_commands),
            conversation_history=tuple(m.to_history() for m in window),
        )
        result = await self.parse(message, context)

        if result.needs_clarification():
            content = result.questionnaire.message
            self.chat_store.save_message(session.id, "assistant", content)
            return ChatReply(
                session_id=session.id,
                status=STATUS_CLARIFICATION,
                content=content,
                result=result,
                questionnaire=result.questionnaire,
            )

        code = self.compile_result(result)
        content = (
            f"I've parsed your request and generated {len(result.commands)} test commands "
            f"with {result.confidence:.0%} confidence."
        )
        self.chat_store.save_message(session.id, "assistant", content, commands=result.commands)

        return ChatReply(
            session_id=session.id,
            status=STATUS_COMMANDS,
            content=content,
            result=result,
            commands=list(result.commands),
            generated_code=code,
        )

    def _latest_commands(self, session_id: str) -> List[Command]:
        for message in reversed(self.chat_store.get_messages(session_id)):
            if message.role == "assistant" and message.commands:
                return list(message.commands)
        return []

    async def provider_health(self) -> Dict[str, bool]:
        return await self.factory.health_check_all()

    def providers(self) -> List[Dict[str, Any]]:
        """Configured providers with their role (primary / fallback)."""
        config = self.factory.config
        rows = []
        for name in self.factory.registered_providers():
            provider_config = config.providers.get(name)
            rows.append({
                "name": name,
                "model": provider_config.model if provider_config else None,
                "primary": name == config.primary_provider,
                "fallback": name in config.fallback_providers,
            })
        return rows

    async def aclose(self) -> None:
        await self.factory.aclose()
