"""Parse question banks written in a human-friendly text format.

File format (repeat blocks separated by blank lines or '---'):

    Q: Question text (supports markdown + LaTeX). Additional lines until the
       next marker are treated as part of the question.
    A: First option text
    B: Second option text
    C: Third option text
    D: Fourth option text
    CORRECT: A|B|C|D
    DIFFICULTY: easy|medium|hard   (optional - omit to fit every level)
    SUBTOPIC: free text            (optional)

Example:

    Q: What is $2 + 2$?
    A: 3
    B: 4
    C: 5
    D: 22
    CORRECT: B
    DIFFICULTY: easy
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from proctor_quiz.constants.quiz_constants import DIFFICULTY_LEVELS
from proctor_quiz.core.errors import QuestionBankError
from proctor_quiz.core.models import GeneratedQuestion


@dataclass(slots=True)
class BankQuestion:
    """A question from a bank together with its optional tags."""

    question: GeneratedQuestion
    difficulty: str | None = None
    subtopic: str | None = None


_OPTION_ORDER = ["A", "B", "C", "D"]


def load_bank_from_file(file_path: Path) -> list[BankQuestion]:
    text = file_path.read_text(encoding="utf-8")
    questions = parse_bank_text(text)
    if not questions:
        raise QuestionBankError(f"Question bank {file_path.name} did not contain any questions.")
    return questions


def parse_bank_text(text: str) -> list[BankQuestion]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            # Blank line encountered after content - finalize current block
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())

    return [_parse_block(block) for block in blocks if block]


def _parse_block(block: str) -> BankQuestion:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    difficulty: str | None = None
    subtopic: str | None = None
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("DIFFICULTY:"):
            difficulty = line.split(":", 1)[1].strip().lower()
            if difficulty not in DIFFICULTY_LEVELS:
                raise QuestionBankError(f"DIFFICULTY must be one of {', '.join(DIFFICULTY_LEVELS)}.")
            current_section = None
            continue

        if upper.startswith("SUBTOPIC:"):
            subtopic = line.split(":", 1)[1].strip() or None
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in _OPTION_ORDER and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in _OPTION_ORDER:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuestionBankError(
                f"Encountered text outside of a known section: '{line}'."
            )

    if not question_lines:
        raise QuestionBankError("Question text missing (Q: ...)")
    if len(options) != 4:
        raise QuestionBankError("Each question must define exactly four options (A-D).")

    option_list = [options.get(letter, "").strip() for letter in _OPTION_ORDER]
    if any(not opt for opt in option_list):
        raise QuestionBankError("Option text cannot be empty.")
    if len(set(option_list)) != len(option_list):
        raise QuestionBankError("Options must be distinct.")

    if correct_letter is None:
        raise QuestionBankError("CORRECT is required for graded questions.")
    if correct_letter not in _OPTION_ORDER:
        raise QuestionBankError("CORRECT must be one of A, B, C, or D.")

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuestionBankError("Question text cannot be empty.")

    return BankQuestion(
        question=GeneratedQuestion(
            question_text=question_text,
            options=option_list,
            correct_option=option_list[_OPTION_ORDER.index(correct_letter)],
        ),
        difficulty=difficulty,
        subtopic=subtopic,
    )
