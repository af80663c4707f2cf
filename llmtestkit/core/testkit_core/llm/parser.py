"""Extraction and validation of JSON command lists from raw model text."""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..commands.models import Command, ParseResult, Questionnaire
from ..errors import ResponseParseError

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8
LOW_CONFIDENCE = 0.5

# ```json ... ``` or ``` ... ```; first block wins
FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.IGNORECASE | re.DOTALL)

RECOGNIZED_KEYS = {"commands", "questionnaire", "error", "confidence"}


class ResponseParser:
    """Turns a provider's raw text into a typed ParseResult.

    Model output is untrusted: syntax is never assumed, and anything that is
    not recoverable JSON of the expected shape is a ResponseParseError rather
    than an empty success.
    """

    def parse(self, raw_response: str) -> ParseResult:
        """Parse raw model output.

        Args:
            raw_response: Text returned by the completion service

        Returns:
            Parse result with commands or a questionnaire

        Raises:
            ResponseParseError: If no JSON object can be recovered, or its
                shape is invalid
        """
        data = self.extract_json(raw_response)
        return self._to_result(data, raw_response)

    def extract_json(self, raw_response: str) -> Dict[str, Any]:
        """Extract a JSON object, trying a fenced code block before the whole text."""
        if raw_response is None or not raw_response.strip():
            raise ResponseParseError("Empty response from model", raw_response or "")

        candidates: List[str] = []
        match = FENCED_BLOCK.search(raw_response)
        if match:
            candidates.append(match.group(1))
        candidates.append(raw_response.strip())

        last_error: Optional[Exception] = None
        for index, candidate in enumerate(candidates):
            try:
                data = json.loads(candidate)
            except json.JSONDecodeError as e:
                last_error = e
                continue

            source = "code block" if match and index == 0 else "direct JSON"
            logger.debug(f"Parsed model response from {source}")

            if not isinstance(data, dict):
                raise ResponseParseError(
                    f"Expected a JSON object, got {type(data).__name__}", raw_response
                )
            return data

        logger.error(f"Failed to parse LLM response: {last_error}")
        raise ResponseParseError(f"Failed to parse LLM response: {last_error}", raw_response)

    def _to_result(self, data: Dict[str, Any], raw_response: str) -> ParseResult:
        commands = self._read_commands(data, raw_response)
        confidence = self._read_confidence(data, raw_response)
        questionnaire = self._read_questionnaire(data, raw_response)

        error_message = data.get("error")
        if error_message is not None and not isinstance(error_message, str):
            error_message = json.dumps(error_message)

        result = ParseResult(
            commands=commands,
            confidence=confidence,
            raw_response=raw_response,
            questionnaire=questionnaire,
            error_message=error_message or None,
        )

        if result.error_message:
            logger.info(f"LLM indicated vague or unclear request: {result.error_message}")
        if confidence < LOW_CONFIDENCE:
            logger.info(f"Low confidence response: {confidence}")
        if questionnaire is not None:
            logger.info(f"LLM returned questionnaire with {len(questionnaire.questions)} questions")

        if result.is_empty():
            result.anomaly = "degenerate response: no commands, questionnaire or error"
            unknown = sorted(data.keys() - RECOGNIZED_KEYS)
            if unknown:
                result.anomaly += f" (unrecognized keys: {', '.join(unknown)})"
            logger.warning(f"LLM returned empty or incomplete JSON ({result.anomaly}): {raw_response}")

        return result

    def _read_commands(self, data: Dict[str, Any], raw_response: str) -> List[Command]:
        raw_commands = data.get("commands")
        if raw_commands is None:
            return []
        if not isinstance(raw_commands, list):
            raise ResponseParseError(
                f"'commands' must be a list, got {type(raw_commands).__name__}", raw_response
            )

        commands = []
        for index, item in enumerate(raw_commands):
            if not isinstance(item, dict) or not isinstance(item.get("type"), str):
                raise ResponseParseError(
                    f"Command {index + 1} is not an object with a string 'type'", raw_response
                )
            try:
                commands.append(Command.model_validate(item))
            except ValidationError as e:
                raise ResponseParseError(f"Command {index + 1} is malformed: {e}", raw_response)
        return commands

    def _read_confidence(self, data: Dict[str, Any], raw_response: str) -> float:
        confidence = data.get("confidence")
        if confidence is None:
            return DEFAULT_CONFIDENCE
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise ResponseParseError(
                f"'confidence' must be a number, got {confidence!r}", raw_response
            )
        if not 0.0 <= confidence <= 1.0:
            logger.warning(f"Confidence {confidence} outside [0, 1], clamping")
            confidence = min(1.0, max(0.0, confidence))
        return float(confidence)

    def _read_questionnaire(self, data: Dict[str, Any], raw_response: str) -> Optional[Questionnaire]:
        raw = data.get("questionnaire")
        if raw is None:
            return None
        try:
            return Questionnaire.model_validate(raw)
        except ValidationError as e:
            raise ResponseParseError(f"Questionnaire is malformed: {e}", raw_response)
