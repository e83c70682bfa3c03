"""Schema inference oracles.

A :class:`SchemaOracle` answers two questions about a file whose layout the
deterministic path could not handle:

- ``infer_mapping``: given the header and sample rows, which column is which;
- ``detect_structure``: given raw rows with no assumed header, where the
  header row is and how to map it.

Oracles are optional and unreliable by nature. Every failure mode (missing
credentials, network or API errors, malformed or schema-violating output)
surfaces as ``None`` so the pipeline moves on to its next strategy. No
retries happen at this layer.
"""

from __future__ import annotations

import json
import os
import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol

from openai import OpenAI
from pydantic import ValidationError

from . import prompting
from .logging_setup import get_logger
from .models import Cell, FileMapping, HeaderStructure

SAMPLE_ROWS = 50
_DEFAULT_MODEL = "gpt-5"
_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")

_logger = get_logger("statement_ingest.oracle")


class SchemaOracle(Protocol):
    def infer_mapping(
        self, header: Sequence[str], sample_rows: Sequence[Sequence[Cell]]
    ) -> FileMapping | None: ...

    def detect_structure(self, raw_rows: Sequence[Sequence[Cell]]) -> HeaderStructure | None: ...


class NullSchemaOracle:
    """Oracle used when AI assistance is unavailable or disabled."""

    def infer_mapping(
        self, header: Sequence[str], sample_rows: Sequence[Sequence[Cell]]
    ) -> FileMapping | None:
        return None

    def detect_structure(self, raw_rows: Sequence[Sequence[Cell]]) -> HeaderStructure | None:
        return None


def _extract_response_json_mapping(resp: Any) -> Mapping[str, Any]:
    """Decode the JSON object from an OpenAI Responses SDK result.

    Prefers ``resp.output_text`` and falls back to
    ``resp.output[0].content[0].text``. Markdown code fences are stripped.
    Raises ``ValueError`` when no text is found or it is not a JSON object.
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        try:
            first = resp.output[0] if getattr(resp, "output", None) else None
            content = getattr(first, "content", None)
            if content:
                txt_obj = getattr(content[0], "text", None)
                if isinstance(txt_obj, str):
                    text = txt_obj
                else:
                    maybe_val = getattr(txt_obj, "value", None)
                    if isinstance(maybe_val, str):
                        text = maybe_val
        except (AttributeError, IndexError, TypeError):
            text = None
    if not text or not isinstance(text, str):
        raise ValueError("Unexpected Responses API shape; unable to locate text output")

    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        decoded = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ValueError("Model output was not valid JSON") from e
    if not isinstance(decoded, Mapping):
        raise ValueError("Model output was not a JSON object")
    return decoded


class OpenAISchemaOracle:
    """Schema oracle backed by the OpenAI Responses API.

    The client is created lazily per call so that constructing the oracle has
    no side effects (no network, no environment reads beyond the model name).
    """

    def __init__(self, *, model: str | None = None, sample_rows: int = SAMPLE_ROWS) -> None:
        self.model = model or os.getenv("STATEMENT_INGEST_OPENAI_MODEL") or _DEFAULT_MODEL
        self.sample_rows = sample_rows

    def _create_client(self) -> OpenAI:
        return OpenAI()

    def _ask(
        self,
        event: str,
        build_user_content: Callable[[], str],
        response_format: dict[str, Any],
    ) -> Mapping[str, Any] | None:
        try:
            user_content = build_user_content()
            client = self._create_client()
            resp = client.responses.create(
                model=self.model,
                instructions=prompting.build_system_instructions(),
                input=user_content,
                text={"format": response_format},
            )
            return _extract_response_json_mapping(resp)
        except Exception as e:  # noqa: BLE001 - any oracle failure means "no answer"
            _logger.warning(
                "oracle:%s_failed model=%s error=%s", event, self.model, e.__class__.__name__
            )
            _logger.debug("oracle:%s_failed detail", event, exc_info=True)
            return None

    def infer_mapping(
        self, header: Sequence[str], sample_rows: Sequence[Sequence[Cell]]
    ) -> FileMapping | None:
        body = self._ask(
            "infer_mapping",
            lambda: prompting.build_mapping_user_content(
                header, list(sample_rows)[: self.sample_rows]
            ),
            prompting.build_mapping_response_format(),
        )
        if body is None:
            return None
        try:
            mapping = FileMapping.model_validate(body)
        except ValidationError:
            _logger.warning("oracle:infer_mapping_invalid model=%s", self.model)
            return None
        _logger.info("oracle:infer_mapping_done date_column=%r", mapping.date_column)
        return mapping

    def detect_structure(self, raw_rows: Sequence[Sequence[Cell]]) -> HeaderStructure | None:
        body = self._ask(
            "detect_structure",
            lambda: prompting.build_structure_user_content(list(raw_rows)[: self.sample_rows]),
            prompting.build_structure_response_format(),
        )
        if body is None:
            return None
        try:
            structure = HeaderStructure.model_validate(body)
        except ValidationError:
            _logger.warning("oracle:detect_structure_invalid model=%s", self.model)
            return None
        _logger.info("oracle:detect_structure_done header_index=%d", structure.header_index)
        return structure


def _env_flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in {"1", "true", "yes", "on"}


def default_oracle() -> SchemaOracle:
    """Return the OpenAI oracle when credentials exist and AI is not disabled."""

    if _env_flag("STATEMENT_INGEST_DISABLE_AI") or not os.getenv("OPENAI_API_KEY"):
        return NullSchemaOracle()
    return OpenAISchemaOracle()


__all__ = [
    "NullSchemaOracle",
    "OpenAISchemaOracle",
    "SAMPLE_ROWS",
    "SchemaOracle",
    "default_oracle",
]
