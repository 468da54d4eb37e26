"""
Candidate list for one script step.

Order is fixed: base content, alternatives, approved submissions, then the
current agent's own submissions. The list is rebuilt whenever any input
changes and is never mutated in place.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple

from .alternatives import Alternative
from .submissions import Submission, SubmissionStatus


class Origin(Enum):
    ORIGINAL = "original"
    ALTERNATIVE = "alternative"
    SUBMISSION = "submission"


@dataclass(frozen=True)
class Candidate:
    id: str
    text: str
    origin: Origin
    order: int = 0
    submitted_by: Optional[str] = None
    status: Optional[SubmissionStatus] = None
    submission_id: Optional[object] = None

    @property
    def is_original(self) -> bool:
        return self.origin is Origin.ORIGINAL

    @property
    def is_submission(self) -> bool:
        return self.origin is Origin.SUBMISSION

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "origin": self.origin.value,
            "order": self.order,
            "submitted_by": self.submitted_by,
            "status": self.status.value if self.status else None,
        }


def _submission_candidate(submission: Submission) -> Candidate:
    return Candidate(
        id=f"submission:{submission.id}",
        text=submission.alt_text,
        origin=Origin.SUBMISSION,
        order=submission.alt_order,
        submitted_by=submission.submitted_by,
        status=submission.status,
        submission_id=submission.id,
    )


def build_candidates(
    base_content: Optional[str],
    alternatives: Iterable[Alternative] = (),
    approved_submissions: Iterable[Submission] = (),
    own_submissions: Iterable[Submission] = (),
) -> Tuple[Candidate, ...]:
    """Merge every source for a step into one ordered, de-duplicated list"""
    candidates = []

    base = (base_content or "").strip()
    if base:
        candidates.append(Candidate(id="original", text=base, origin=Origin.ORIGINAL))

    approved = sorted(approved_submissions, key=lambda s: s.alt_order)
    approved_texts = {s.alt_text.strip() for s in approved}
    approved_ids = {s.id for s in approved}

    # An approved submission is also upserted into alternatives; show it once, with its submitter
    for alt in sorted(alternatives, key=lambda a: a.alt_order):
        if alt.alt_text.strip() in approved_texts:
            continue
        candidates.append(Candidate(
            id=f"alt:{alt.alt_order}",
            text=alt.alt_text,
            origin=Origin.ALTERNATIVE,
            order=alt.alt_order,
        ))

    candidates.extend(_submission_candidate(s) for s in approved)

    # Own pending (and rejected) submissions are only visible to their author
    for submission in own_submissions:
        if submission.id in approved_ids:
            continue
        candidates.append(_submission_candidate(submission))

    return tuple(candidates)
