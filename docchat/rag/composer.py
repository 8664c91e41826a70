"""Context-augmented prompt construction and answer generation."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import structlog

from docchat import config
from docchat.llm_client import Generator
from docchat.rag.retriever import RetrievalResult

logger = structlog.get_logger()

INSTRUCTIONS = (
    "You are an AI assistant. Answer the user's question using only the "
    "context below. Cite the sources you rely on by their number, e.g. [1]."
)


@dataclass
class AugmentedAnswer:
    """The model's answer plus the exact contexts it was given."""

    answer: str
    contexts: List[RetrievalResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.answer,
            "contexts": [c.to_dict() for c in self.contexts],
        }


def build_prompt(question: str, contexts: Sequence[RetrievalResult]) -> str:
    """Render the augmented prompt.

    Each context is numbered from 1 as ``Source [i] (source):`` so the
    answer's citation markers can be mapped back to ``contexts[i - 1]``.
    """
    context_text = "\n\n".join(
        f"Source [{i}] ({ctx.source}):\n{ctx.text}"
        for i, ctx in enumerate(contexts, 1)
    )
    return f"{INSTRUCTIONS}\n\nContext:\n{context_text}\n\nQuestion: {question}"


class AnswerComposer:
    """Builds the augmented prompt and asks the generation model to answer."""

    def __init__(self, generator: Generator, max_tokens: int = None):
        self.generator = generator
        self.max_tokens = max_tokens or config.GENERATION_MAX_TOKENS

    async def compose(
        self, question: str, contexts: Sequence[RetrievalResult]
    ) -> AugmentedAnswer:
        """Generate an answer grounded in the given contexts.

        The model output is returned verbatim; citation markers are not
        checked against the numbering.

        Raises:
            GenerationServiceError: If the model call fails (not retried)
        """
        contexts = list(contexts)
        prompt = build_prompt(question, contexts)

        logger.info(
            "composing_answer",
            question_length=len(question),
            num_contexts=len(contexts),
            prompt_length=len(prompt),
        )

        answer = await self.generator.generate(prompt, self.max_tokens)

        return AugmentedAnswer(answer=answer, contexts=contexts)
