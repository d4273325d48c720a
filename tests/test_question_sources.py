import pytest

from proctor_quiz.adapters.question_bank import BUNDLED_BANK_DIR, QuestionBankGenerator, topic_file_name
from proctor_quiz.core.errors import QuestionBankError, QuestionGenerationError
from proctor_quiz.core.markdown_math_renderer import renderer
from proctor_quiz.core.quiz_importer import load_bank_from_file, parse_bank_text

SAMPLE_BANK = """\
Q: What is $2 + 2$?
A: 3
B: 4
C: 5
D: 22
CORRECT: B
DIFFICULTY: easy

---

Q: Which module provides `deque`?
Second line of the question.
A: itertools
B: functools
C: collections
D: heapq
CORRECT: c
SUBTOPIC: stdlib
"""


def test_parse_bank_text_reads_tags_and_multiline_questions():
    bank = parse_bank_text(SAMPLE_BANK)

    assert len(bank) == 2
    assert bank[0].question.correct_option == "4"
    assert bank[0].difficulty == "easy"
    assert bank[0].subtopic is None
    assert bank[1].question.question_text == "Which module provides `deque`?\nSecond line of the question."
    assert bank[1].question.correct_option == "collections"
    assert bank[1].difficulty is None
    assert bank[1].subtopic == "stdlib"


@pytest.mark.parametrize(
    "block",
    [
        "Q: Missing correct\nA: 1\nB: 2\nC: 3\nD: 4",
        "Q: Three options\nA: 1\nB: 2\nC: 3\nCORRECT: A",
        "Q: Duplicate options\nA: 1\nB: 1\nC: 3\nD: 4\nCORRECT: A",
        "Q: Bad letter\nA: 1\nB: 2\nC: 3\nD: 4\nCORRECT: E",
        "Q: Bad difficulty\nA: 1\nB: 2\nC: 3\nD: 4\nCORRECT: A\nDIFFICULTY: extreme",
        "stray text\nQ: Text first\nA: 1\nB: 2\nC: 3\nD: 4\nCORRECT: A",
    ],
)
def test_parse_bank_text_rejects_invalid_blocks(block):
    with pytest.raises(QuestionBankError):
        parse_bank_text(block)


def test_empty_bank_file_is_an_error(tmp_path):
    path = tmp_path / "empty.txt"
    path.write_text("\n\n", encoding="utf-8")
    with pytest.raises(QuestionBankError):
        load_bank_from_file(path)


def test_topic_file_name_slugifies():
    assert topic_file_name(" Python ") == "python.txt"
    assert topic_file_name("Linear Algebra!") == "linear_algebra.txt"
    with pytest.raises(QuestionGenerationError):
        topic_file_name("  ")


def test_bundled_bank_generator_filters_by_difficulty_and_subtopic():
    generator = QuestionBankGenerator(BUNDLED_BANK_DIR, seed=7)
    bundled = load_bank_from_file(BUNDLED_BANK_DIR / "python.txt")
    easy_basics = {
        entry.question.question_text
        for entry in bundled
        if entry.difficulty == "easy" and entry.subtopic == "basics"
    }

    questions = generator.generate("Python", "easy", 10, subtopic="Basics")

    assert {q.question_text for q in questions} == easy_basics
    assert all(q.correct_option in q.options for q in questions)


def test_seeded_generator_is_reproducible():
    first = QuestionBankGenerator(BUNDLED_BANK_DIR, seed=3).generate("python", "medium", 2)
    second = QuestionBankGenerator(BUNDLED_BANK_DIR, seed=3).generate("python", "medium", 2)

    assert [q.question_text for q in first] == [q.question_text for q in second]
    assert len(first) == 2


def test_generator_reports_missing_topics_and_levels(tmp_path):
    (tmp_path / "tiny.txt").write_text(SAMPLE_BANK, encoding="utf-8")
    generator = QuestionBankGenerator(tmp_path)

    with pytest.raises(QuestionGenerationError):
        generator.generate("history", "easy", 3)
    # only the untagged question fits a hard request on another subtopic
    hard = generator.generate("tiny", "hard", 5)
    assert [q.correct_option for q in hard] == ["collections"]
    with pytest.raises(QuestionGenerationError):
        generator.generate("tiny", "hard", 5, subtopic="geometry")


def test_renderer_keeps_math_for_mathjax():
    html = renderer.render_fragment("What is $x^2$ when **x** = 3?")

    assert "$x^2$" in html
    assert "<strong>x</strong>" in html
