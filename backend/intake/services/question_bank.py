"""Aptitude question bank.

A static, ordered sequence of forced-choice questions. Every option is
tagged with the track it counts toward. Question categories are
presentational metadata only; scoring treats every question the same way.

The bank is built once at import time and shared read-only by all sessions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from intake.services.tracks import TRACK_IDS

if TYPE_CHECKING:
    from intake.services.onboarding_session import OnboardingSession


class QuestionCategory(str, Enum):
    """Presentation category of a question."""

    PERSONALITY = "personality"
    SKILL = "skill"
    TECHNICAL = "technical"
    SCENARIO = "scenario"
    PREFERENCE = "preference"


@dataclass(frozen=True)
class QuestionOption:
    """One answer choice.

    Attributes:
        value: Option key submitted by the applicant ("A", "B", ...).
        text: Display text.
        track_id: Track this choice counts toward.
    """

    value: str
    text: str
    track_id: str


@dataclass(frozen=True)
class Question:
    """A forced-choice aptitude question.

    Attributes:
        question_id: Stable 1-based identifier.
        category: Presentation category.
        prompt: Question text (may contain newlines for code snippets).
        options: Ordered answer choices.
    """

    question_id: int
    category: QuestionCategory
    prompt: str
    options: tuple[QuestionOption, ...]

    def get_option(self, value: str) -> QuestionOption | None:
        """Return the option with the given value, or None."""
        for option in self.options:
            if option.value == value:
                return option
        return None


QUESTIONS: tuple[Question, ...] = (
    Question(
        question_id=1,
        category=QuestionCategory.PERSONALITY,
        prompt="When faced with a security incident, what is your first instinct?",
        options=(
            QuestionOption("A", "Dive into logs and technical analysis immediately", "builders"),
            QuestionOption("B", "Coordinate team response and delegate tasks", "leaders"),
            QuestionOption("C", "Think about innovative detection methods", "entrepreneurs"),
            QuestionOption("D", "Document the incident for training purposes", "educators"),
            QuestionOption("E", "Research similar incidents and emerging patterns", "researchers"),
        ),
    ),
    Question(
        question_id=2,
        category=QuestionCategory.SKILL,
        prompt="Which activity sounds most appealing to you?",
        options=(
            QuestionOption("A", "Building and configuring security tools", "builders"),
            QuestionOption("B", "Developing security policies and frameworks", "leaders"),
            QuestionOption("C", "Creating innovative security solutions", "entrepreneurs"),
            QuestionOption("D", "Teaching others about cybersecurity", "educators"),
            QuestionOption("E", "Analyzing threat intelligence data", "researchers"),
        ),
    ),
    Question(
        question_id=3,
        category=QuestionCategory.TECHNICAL,
        prompt=(
            "Complete this Python security check:\n"
            'if user_input.contains("<?php"):\n'
            "    _____"
        ),
        options=(
            QuestionOption("A", "block_request()", "builders"),
            QuestionOption("B", "alert_admin()", "leaders"),
            QuestionOption("C", "log_and_analyze()", "researchers"),
            QuestionOption("D", "sanitize_input()", "builders"),
        ),
    ),
    Question(
        question_id=4,
        category=QuestionCategory.SCENARIO,
        prompt=(
            "Your company needs to implement a new security program. "
            "What role do you prefer?"
        ),
        options=(
            QuestionOption("A", "Implement technical controls and monitoring", "builders"),
            QuestionOption("B", "Lead the project and manage stakeholders", "leaders"),
            QuestionOption("C", "Design an innovative approach to the problem", "entrepreneurs"),
            QuestionOption("D", "Train staff on the new security measures", "educators"),
            QuestionOption("E", "Research best practices and emerging threats", "researchers"),
        ),
    ),
    Question(
        question_id=5,
        category=QuestionCategory.PREFERENCE,
        prompt="What type of cybersecurity content do you consume most?",
        options=(
            QuestionOption("A", "Technical tutorials and lab exercises", "builders"),
            QuestionOption("B", "Industry reports and compliance frameworks", "leaders"),
            QuestionOption("C", "Startup stories and innovation trends", "entrepreneurs"),
            QuestionOption("D", "Educational resources and teaching methods", "educators"),
            QuestionOption("E", "Academic papers and threat research", "researchers"),
        ),
    ),
)

QUESTION_COUNT = len(QUESTIONS)


def _check_bank(questions: tuple[Question, ...]) -> None:
    """Fail at import time if the bank references an undeclared track."""
    for question in questions:
        values = [option.value for option in question.options]
        if len(values) != len(set(values)):
            raise RuntimeError(
                f"Question {question.question_id} has duplicate option values"
            )
        for option in question.options:
            if option.track_id not in TRACK_IDS:
                raise RuntimeError(
                    f"Question {question.question_id} option {option.value} "
                    f"references unknown track '{option.track_id}'"
                )


_check_bank(QUESTIONS)


def get_question(question_index: int) -> Question | None:
    """Return the question at a 0-based index, or None if out of range."""
    if 0 <= question_index < QUESTION_COUNT:
        return QUESTIONS[question_index]
    return None


@dataclass(frozen=True)
class AnswerRecord:
    """A committed answer.

    Attributes:
        question_index: 0-based index into the question bank.
        chosen_value: Value of the chosen option.
    """

    question_index: int
    chosen_value: str


def next_question(session: "OnboardingSession") -> Question | None:
    """Return the first unanswered question, or None when exhausted.

    Args:
        session: The onboarding session being answered.

    Returns:
        The next question to ask, or None once every question is answered.
    """
    return get_question(len(session.answers))
