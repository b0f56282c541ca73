"""
Answer synthesis: grounding prompt construction and streamed generation.

``Synthesizer.stream_answer`` returns an ``AnswerStream``, a pull-based async
iterator over text increments. Increments are forwarded the moment the
generator produces them and are also accumulated, so once iteration ends the
stream knows whether it completed normally and what the full answer was.
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import aclosing

from ..core.errors import GenerationError, InvalidArgumentError
from ..core.text import estimate_tokens, truncate
from ..schemas.passage import Passage
from .generator import TextGenerator

logger = logging.getLogger(__name__)

CITATION_INSTRUCTION = (
    "Please provide a helpful answer based on the context above. Cite sources using [Title](Post ID) format."
)


def build_prompt(question: str, passages: list[Passage]) -> str:
    """
    Build the grounding prompt for ``question``.

    Passages are numbered from 1 in the order given, which is the retrieval
    ranking, most relevant first.
    """
    lines = ["Context from Stack Overflow:", ""]

    for i, passage in enumerate(passages, start=1):
        lines.append(f"[{i}] Question: {passage.title} (Post ID: {passage.source_id})")
        lines.append(f"Content: {passage.text}")
        lines.append(f"Relevance Score: {passage.score:.3f}")
        lines.append("")

    lines += ["---", "", f"User Question: {question}", "", CITATION_INSTRUCTION]

    return "\n".join(lines) + "\n"


class AnswerStream:
    """
    One generation run, consumed with ``async for``.

    ``completed`` becomes True only when the generator finished normally.
    A generator failure raises GenerationError after whatever increments were
    already delivered; cancellation or closing the stream early leaves
    ``completed`` False.
    """

    def __init__(self, generator: TextGenerator, prompt: str):
        self.prompt = prompt
        self.completed = False
        self.failed = False
        self.first_token_ms: int | None = None
        self.latency_ms: int | None = None
        self._generator = generator
        self._parts: list[str] = []
        self._started = False

    @property
    def text(self) -> str:
        return "".join(self._parts)

    @property
    def prompt_tokens(self) -> int:
        return estimate_tokens(self.prompt)

    @property
    def completion_tokens(self) -> int:
        return estimate_tokens(self.text)

    def __aiter__(self) -> AsyncIterator[str]:
        if self._started:
            raise RuntimeError("AnswerStream can only be iterated once")
        self._started = True
        return self._run()

    async def _run(self) -> AsyncIterator[str]:
        started = time.perf_counter()
        logger.debug(f"Prompt built: {len(self.prompt)} characters")

        try:
            async with aclosing(self._generator.stream_complete(self.prompt)) as pieces:
                async for piece in pieces:
                    if not piece:
                        continue
                    if self.first_token_ms is None:
                        self.first_token_ms = int((time.perf_counter() - started) * 1000)
                        logger.debug(f"First token received after {self.first_token_ms}ms")
                    self._parts.append(piece)
                    yield piece
        except Exception as e:
            self.failed = True
            logger.error(f"LLM streaming failed after {len(self._parts)} increments: {e}", exc_info=True)
            raise GenerationError() from e
        finally:
            self.latency_ms = int((time.perf_counter() - started) * 1000)

        self.completed = True
        logger.info(
            f"LLM streaming completed: duration={self.latency_ms}ms, first_token={self.first_token_ms}ms, "
            f"estimated_tokens={self.prompt_tokens + self.completion_tokens}, response_length={len(self.text)}"
        )


class Synthesizer:
    """Turns a question and its ranked passages into a streamed answer."""

    def __init__(self, generator: TextGenerator):
        self.generator = generator

    def stream_answer(self, question: str, passages: list[Passage]) -> AnswerStream:
        """
        Start a streamed answer for ``question`` grounded on ``passages``.

        Raises:
            InvalidArgumentError: If the question is blank
        """
        if not question or not question.strip():
            raise InvalidArgumentError("Question cannot be null or empty.")
        if passages is None:
            raise InvalidArgumentError("Passages must be a list (possibly empty).")

        logger.info(
            f"Starting LLM streaming: question='{truncate(question)}', context passages={len(passages)}"
        )
        return AnswerStream(self.generator, build_prompt(question, passages))
