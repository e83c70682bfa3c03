"""Test helpers to stub the OpenAI Responses client used by oracle.py.

The stub inspects the user content to tell a header-mapping request (it
embeds a ``BEGIN_HEADER_JSON`` block) from a structure-recovery request, and
answers each with a canned payload. Payloads may be a mapping (serialized to
JSON), a raw string (returned verbatim, for malformed-output tests) or an
exception instance (raised from ``create``).
"""

from __future__ import annotations

import json
from typing import Any

from statement_ingest.prompting import HEADER_BEGIN, HEADER_END, ROWS_BEGIN, ROWS_END


def extract_block(user_content: str, begin: str, end: str) -> Any:
    b = user_content.find(begin)
    e = user_content.rfind(end)
    if b == -1 or e == -1 or e <= b:
        raise AssertionError(f"oracle: user content missing {begin} block")
    return json.loads(user_content[b + len(begin) : e])


def extract_header(user_content: str) -> list[str]:
    return extract_block(user_content, HEADER_BEGIN, HEADER_END)


def extract_rows(user_content: str) -> list[list[Any]]:
    return extract_block(user_content, ROWS_BEGIN, ROWS_END)


class _Resp:
    output_text: str


class OpenAIStub:
    """Minimal stand-in for ``openai.OpenAI`` exposing ``responses.create``.

    Parameters
    ----------
    mapping:
        Answer for header-mapping requests.
    structure:
        Answer for structure-recovery requests.
    calls_out:
        Appended with each call's kwargs for lightweight assertions.
    """

    def __init__(
        self,
        *,
        mapping: Any = None,
        structure: Any = None,
        calls_out: list[dict[str, Any]] | None = None,
    ) -> None:
        self._mapping = mapping
        self._structure = structure
        self._calls = calls_out if calls_out is not None else []

        class _Responses:
            def __init__(self, outer: OpenAIStub) -> None:
                self._outer = outer

            def create(self, **kwargs: Any) -> _Resp:
                self._outer._calls.append(kwargs)
                is_mapping = HEADER_BEGIN in kwargs["input"]
                answer = self._outer._mapping if is_mapping else self._outer._structure
                if isinstance(answer, BaseException):
                    raise answer
                resp = _Resp()
                resp.output_text = answer if isinstance(answer, str) else json.dumps(answer)
                return resp

        self.responses = _Responses(self)

    @property
    def calls(self) -> list[dict[str, Any]]:
        return self._calls

    def factory(self, *a: Any, **kw: Any) -> OpenAIStub:
        """Use as a replacement for the ``OpenAI`` class: always returns ``self``."""

        return self
