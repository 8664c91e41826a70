"""Tests for augmented prompt construction and answer composition."""
import pytest

from docchat.errors import GenerationServiceError
from docchat.rag.composer import AnswerComposer, AugmentedAnswer, build_prompt
from docchat.rag.retriever import RetrievalResult


@pytest.mark.asyncio
async def test_prompt_cites_numbered_sources(generator):
    contexts = [RetrievalResult(text="Paris is the capital", source="geo.txt")]
    composer = AnswerComposer(generator, max_tokens=128)

    result = await composer.compose("What is the capital?", contexts)

    prompt = generator.prompts[0]
    assert "Source [1] (geo.txt):" in prompt
    assert "Paris is the capital" in prompt
    assert prompt.rstrip().endswith("Question: What is the capital?")
    assert result.contexts == contexts
    assert result.answer == generator.reply


@pytest.mark.asyncio
async def test_max_tokens_forwarded(generator):
    composer = AnswerComposer(generator, max_tokens=77)

    await composer.compose("q", [])

    assert generator.max_tokens == [77]


@pytest.mark.asyncio
async def test_answer_returned_verbatim(generator):
    generator.reply = "  See [7], which does not exist.\n"
    composer = AnswerComposer(generator)

    result = await composer.compose("q", [RetrievalResult("t", "s")])

    assert result.answer == "  See [7], which does not exist.\n"


@pytest.mark.asyncio
async def test_generation_failure_propagates(generator):
    generator.fail = True
    composer = AnswerComposer(generator)

    with pytest.raises(GenerationServiceError):
        await composer.compose("q", [RetrievalResult("t", "s")])


def test_sources_numbered_in_order():
    prompt = build_prompt(
        "Which?",
        [RetrievalResult("first text", "a.txt"), RetrievalResult("second text", "b.pdf")],
    )

    assert prompt.index("Source [1] (a.txt):\nfirst text") < prompt.index(
        "Source [2] (b.pdf):\nsecond text"
    )
    assert "only" in prompt.split("Context:")[0]


def test_augmented_answer_to_dict():
    answer = AugmentedAnswer(answer="yes", contexts=[RetrievalResult("t", "s")])

    assert answer.to_dict() == {"answer": "yes", "contexts": [{"text": "t", "source": "s"}]}
