from __future__ import annotations

import asyncio

import pytest

from assessment_service.models.assessment import QuestionType
from assessment_service.repos.data_store import Collection, InMemoryDataStore
from assessment_service.services.authoring import (
    OptionDraft,
    add_question,
    default_options,
    validate_question,
)
from assessment_service.services.errors import QuestionValidationError

# ---- validation table ----

_INVALID = [
    # (text, type, options, message fragment)
    ("Why?", QuestionType.FREE_TEXT, [OptionDraft("x", "1")], "at least 5"),
    (
        "Pick the right one",
        QuestionType.MULTIPLE_CHOICE,
        [OptionDraft("only", "1"), OptionDraft("  ", "0")],
        "at least 2",
    ),
    ("Is it on?", QuestionType.YES_NO, [OptionDraft("Yes", "1")], "both options"),
    (
        "Pick the right one",
        QuestionType.MULTIPLE_CHOICE,
        [OptionDraft("a", "1"), OptionDraft("b")],
        "every option or for none",
    ),
    (
        "Pick the right one",
        QuestionType.MULTIPLE_CHOICE,
        [OptionDraft("a", "one"), OptionDraft("b", "2")],
        "must be numbers",
    ),
    ("Describe it", QuestionType.FREE_TEXT, [OptionDraft("model")], "need a mark"),
]


@pytest.mark.parametrize(("text", "qtype", "options", "fragment"), _INVALID)
def test_validate_question_rejects(text, qtype, options, fragment) -> None:
    with pytest.raises(QuestionValidationError, match=fragment):
        validate_question(text, qtype, options)


def test_marks_may_be_omitted_entirely() -> None:
    validate_question(
        "Pick the right one",
        QuestionType.MULTIPLE_CHOICE,
        [OptionDraft("a"), OptionDraft("b")],
    )


@pytest.mark.parametrize("qtype", list(QuestionType))
def test_default_options_are_valid(qtype: QuestionType) -> None:
    validate_question("A valid question", qtype, default_options(qtype))


def test_yes_no_defaults() -> None:
    yes, no = default_options(QuestionType.YES_NO)
    assert (yes.text, yes.marks, yes.is_correct) == ("Yes", "1", True)
    assert (no.text, no.marks, no.is_correct) == ("No", "0", False)


def test_add_question_stores_non_blank_options() -> None:
    async def scenario():
        store = InMemoryDataStore()
        question = await add_question(
            store,
            topic_id="t1",
            text="  Pick the right one  ",
            qtype=QuestionType.MULTIPLE_CHOICE,
            options=[
                OptionDraft("a", " 2 "),
                OptionDraft("b", "0"),
                OptionDraft("   "),
            ],
        )
        assert question["question"] == "Pick the right one"
        options = await store.query_ordered(
            Collection.ANSWERS, {"question_id": question["id"]}
        )
        assert [(o["text"], o["marks"]) for o in options] == [("a", "2"), ("b", "0")]

    asyncio.run(scenario())


def test_add_question_invalid_stores_nothing() -> None:
    async def scenario():
        store = InMemoryDataStore()
        with pytest.raises(QuestionValidationError):
            await add_question(
                store, topic_id="t1", text="Bad", qtype=QuestionType.YES_NO
            )
        assert await store.count_where(Collection.QUESTIONS, {}) == 0

    asyncio.run(scenario())
