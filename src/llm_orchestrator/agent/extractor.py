"""Structured extraction with validation and repair.

An ``Extractor`` forces the model to call a single ``submit`` capability whose
parameter schema is the target schema. The submitted arguments are validated
with jsonschema; on failure the validation errors are sent back and the model
gets another chance, up to ``max_repair_attempts`` times.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from ..capabilities.base import BaseCapability
from ..config import AgentConfig
from ..errors import ExtractionFailedError, InvalidArgumentsError
from ..providers.base import CompletionModel
from ..providers.types import CapabilityChoice, Document, Message
from ..serialization import stable_json_dumps
from ..validation import validate_against_schema
from .core import Agent

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUBMIT = "submit"

DEFAULT_PREAMBLE = (
    "Extract the requested data from the user's input. "
    f"Always respond by calling the '{SUBMIT}' tool with the extracted data. "
    "Use null or omit optional fields you cannot find."
)


class SubmitCapability(BaseCapability):
    """The single capability an extractor advertises. Its arguments are the extracted data."""

    def __init__(self, schema: dict[str, Any]) -> None:
        super().__init__(
            name=SUBMIT,
            description="Submit the extracted data",
            parameters=schema,
        )

    async def invoke(self, arguments: dict[str, Any]) -> Any:
        return arguments


@dataclass
class ExtractionResult(Generic[T]):
    """
    Result of structured extraction.

    Attributes:
        data: Validated data, converted with ``output_type`` when one is set.
        raw: The submitted arguments as returned by the model.
        attempts: Number of completions used, including the first.
        errors: Validation errors from rejected attempts.
    """

    data: T
    raw: dict[str, Any]
    attempts: int = 1
    errors: list[str] = field(default_factory=list)

    @property
    def repair_attempts(self) -> int:
        return self.attempts - 1


class Extractor(Generic[T]):
    """
    Extract schema-conforming data from text.

    Example:
        ```python
        extractor = Extractor(
            model,
            schema={
                "type": "object",
                "properties": {"name": {"type": "string"}, "age": {"type": "integer"}},
                "required": ["name"],
            },
        )
        person = await extractor.extract("Ada Lovelace was 36.")
        ```

    Args:
        model: Completion model
        schema: JSON Schema (type object) the data must satisfy
        name: Name used for logging and run contexts
        preamble: Extra instructions appended to the default ones
        context: Static documents attached to every request
        output_type: Optional callable applied to the validated dict
        max_repair_attempts: Extra completions allowed after a rejected submission
        temperature: Sampling temperature for every attempt
        agent_options: Other keyword arguments forwarded to ``Agent``
    """

    def __init__(
        self,
        model: CompletionModel,
        schema: dict[str, Any],
        *,
        name: str = "extractor",
        preamble: str | None = None,
        context: Iterable[Document | str] = (),
        output_type: Callable[..., T] | None = None,
        max_repair_attempts: int = 2,
        temperature: float | None = 0.0,
        **agent_options: Any,
    ) -> None:
        if max_repair_attempts < 0:
            raise ValueError("max_repair_attempts must be >= 0")
        self.schema = schema
        self.output_type = output_type
        self.max_repair_attempts = max_repair_attempts
        self.submit = SubmitCapability(schema)

        instructions = DEFAULT_PREAMBLE if not preamble else f"{DEFAULT_PREAMBLE}\n\n{preamble}"
        config = agent_options.pop("config", None) or AgentConfig()
        self.agent = Agent(
            model,
            name=name,
            preamble=instructions,
            context=context,
            capabilities=[self.submit],
            choice=CapabilityChoice.forced(SUBMIT),
            temperature=temperature,
            config=config.with_overrides(max_turns=1, trace=True),
            **agent_options,
        )

    @property
    def name(self) -> str:
        return self.agent.name

    async def extract(self, text: str, **kwargs: Any) -> T:
        """Extract data from ``text``; raises ``ExtractionFailedError`` when repair runs out."""
        result = await self.extract_with_result(text, **kwargs)
        return result.data

    async def extract_with_result(self, text: str, **kwargs: Any) -> ExtractionResult[T]:
        """
        Run the extraction loop and return the data with bookkeeping.

        Keyword arguments (``cancellation_token``, ``timeout``, ``context``)
        are forwarded to ``Agent.run`` for every attempt.

        Raises:
            ExtractionFailedError: No valid submission within the attempt budget.
        """
        history: list[Message] = []
        prompt = text
        rejected: list[str] = []
        errors: list[str] = []

        for attempt in range(1, self.max_repair_attempts + 2):
            response = await self.agent.run(prompt, history=history, max_turns=1, **kwargs)
            record = response.trace[-1]
            submission = next((inv for inv in record.response.invocations if inv.name == SUBMIT), None)

            raw: dict[str, Any] | None = None
            if submission is None:
                errors = [f"No call to '{SUBMIT}' was made"]
            else:
                try:
                    raw = submission.parse_arguments()
                except InvalidArgumentsError as exc:
                    errors = [exc.message]
                else:
                    validation = validate_against_schema(raw, self.schema)
                    if not validation:
                        errors = validation.errors
                    elif self.output_type is None:
                        return ExtractionResult(data=raw, raw=raw, attempts=attempt, errors=rejected)
                    else:
                        try:
                            data = self.output_type(**raw)
                        except (TypeError, ValueError) as exc:
                            type_name = getattr(self.output_type, "__name__", repr(self.output_type))
                            errors = [f"Submission does not fit {type_name}: {exc}"]
                        else:
                            return ExtractionResult(data=data, raw=raw, attempts=attempt, errors=rejected)

            rejected.extend(errors)
            logger.info(
                "Extraction attempt %d/%d for %s rejected: %s",
                attempt,
                self.max_repair_attempts + 1,
                self.name,
                "; ".join(errors),
            )
            history = response.history
            prompt = _repair_prompt(raw, errors)

        raise ExtractionFailedError(
            f"Extraction failed after {self.max_repair_attempts + 1} attempts: {'; '.join(errors)}",
            errors=rejected,
            attempts=self.max_repair_attempts + 1,
        )


def _repair_prompt(raw: dict[str, Any] | None, errors: list[str]) -> str:
    lines = [f"Your previous submission was rejected: {'; '.join(errors)}."]
    if raw is not None:
        lines.append(f"Submitted data: {stable_json_dumps(raw)}")
    lines.append(f"Call '{SUBMIT}' again with corrected data that matches the schema.")
    return "\n".join(lines)


__all__ = ["Extractor", "ExtractionResult", "SubmitCapability", "SUBMIT"]
