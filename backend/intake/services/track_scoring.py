"""Track scoring engine.

Aggregates aptitude answers into a per-track affinity score.

Algorithm:
1. raw_weight[track] = number of answers whose chosen option is tagged
   with that track
2. normalized_score = round(100 * raw_weight / total_answers), rounding
   half up; 0 for every track when there are no answers
3. The recommended track is the highest normalized score. Ties go to the
   track declared first in the catalogue.
4. With zero answers no track is recommended.

Scores are always derived from the answers actually given. Every question
carries the same weight regardless of its category.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from intake.services.question_bank import QUESTIONS, AnswerRecord, Question
from intake.services.tracks import TRACKS, Track


@dataclass(frozen=True)
class TrackScore:
    """Affinity of an applicant to one track.

    Attributes:
        track_id: Track identifier.
        raw_weight: Number of answers that counted toward this track.
        normalized_score: Share of answers as a 0-100 integer.
        recommended: True for exactly one track once any answer exists.
    """

    track_id: str
    raw_weight: int
    normalized_score: int
    recommended: bool = False


def _normalize(raw_weight: int, total: int) -> int:
    """Round 100 * raw / total half up, using integer arithmetic only."""
    if total <= 0:
        return 0
    return (200 * raw_weight + total) // (2 * total)


def score_answers(
    answers: Sequence[AnswerRecord],
    questions: Sequence[Question] = QUESTIONS,
    tracks: Sequence[Track] = TRACKS,
) -> list[TrackScore]:
    """Score answers against every declared track.

    Args:
        answers: Committed answers, one per question at most.
        questions: Question bank the answer indexes refer to.
        tracks: Track catalogue, in tie-break order.

    Returns:
        One TrackScore per track, in declaration order.

    Raises:
        ValueError: If an answer references an unknown question or option,
            or an option is tagged with an undeclared track.
    """
    raw: dict[str, int] = {track.track_id: 0 for track in tracks}

    for answer in answers:
        if not 0 <= answer.question_index < len(questions):
            msg = f"Answer references unknown question index {answer.question_index}"
            raise ValueError(msg)
        option = questions[answer.question_index].get_option(answer.chosen_value)
        if option is None:
            msg = (
                f"Answer '{answer.chosen_value}' is not an option of question "
                f"index {answer.question_index}"
            )
            raise ValueError(msg)
        if option.track_id not in raw:
            msg = f"Option is tagged with undeclared track '{option.track_id}'"
            raise ValueError(msg)
        raw[option.track_id] += 1

    total = len(answers)
    normalized = {track_id: _normalize(weight, total) for track_id, weight in raw.items()}

    recommended_id: str | None = None
    if total > 0:
        best = -1
        # Strict > keeps the first declared track on ties
        for track in tracks:
            if normalized[track.track_id] > best:
                best = normalized[track.track_id]
                recommended_id = track.track_id

    return [
        TrackScore(
            track_id=track.track_id,
            raw_weight=raw[track.track_id],
            normalized_score=normalized[track.track_id],
            recommended=track.track_id == recommended_id,
        )
        for track in tracks
    ]


def recommended_track(scores: Sequence[TrackScore]) -> str | None:
    """Return the recommended track id, or None if nothing is recommended."""
    for score in scores:
        if score.recommended:
            return score.track_id
    return None
