import pytest

from medreport.services.questions import QUESTION_LIMIT, QuestionPolicy, build_question_policy, generate_questions
from medreport.services.reference_ranges import Status
from medreport.services.report_pipeline import ResolvedItem, Section, load_settings
from medreport.utils.exceptions import TableError


def _item(label, status):
    return ResolvedItem(
        term=label, label=label, section="s", section_title="S", status=status, explanation="x"
    )


@pytest.fixture(scope="module")
def policy():
    return load_settings().questions


def test_generic_only_when_nothing_flagged(policy):
    sections = [Section("s", "S", (_item("WBC", Status.IN_RANGE), _item("TSH", Status.UNKNOWN)))]
    assert generate_questions(sections, policy) == list(policy.generic)[:QUESTION_LIMIT]


def test_first_flagged_item_gets_a_question(policy):
    sections = [
        Section("a", "A", (_item("WBC", Status.IN_RANGE),)),
        Section("b", "B", (_item("Sodium", Status.HIGH), _item("Calcium", Status.LOW))),
    ]
    questions = generate_questions(sections, policy)
    assert questions[0] == "Could we discuss my Sodium result and whether a follow-up test is useful?"
    assert not any("Calcium" in q for q in questions)
    assert questions[1:] == list(policy.generic)[: QUESTION_LIMIT - 1]


def test_generic_set_covers_cadence_medication_and_lifestyle(policy):
    text = " ".join(policy.generic).lower()
    assert "recheck" in text
    assert "medication" in text and "diet" in text and "water" in text
    assert "lifestyle" in text


def test_questions_never_exceed_limit():
    policy = QuestionPolicy(limit=3, generic=tuple(f"Generic {i}?" for i in range(10)))
    sections = [Section("s", "S", (_item("LDL", Status.HIGH),))]
    questions = generate_questions(sections, policy)
    assert len(questions) == 3
    assert questions[0].startswith("Could we discuss my LDL result")


def test_empty_sections(policy):
    assert generate_questions([], policy) == list(policy.generic)[:QUESTION_LIMIT]


def test_questions_are_not_diagnostic(policy):
    sections = [Section("s", "S", (_item("Hemoglobin", Status.LOW),))]
    for question in generate_questions(sections, policy):
        assert question.endswith("?")
        for word in ("anemia", "you have", "diagnos", "disease"):
            assert word not in question.lower()


@pytest.mark.parametrize("data,message", [
    ({"limit": 9}, "between 1 and 5"),
    ({"limit": "many"}, "must be an integer"),
    ({"flagged": "Discuss {name}?"}, "template is invalid"),
])
def test_malformed_policy_rejected(data, message):
    with pytest.raises(TableError, match=message):
        build_question_policy(data)
