from teleprompter.alternatives import Alternative
from teleprompter.candidates import Origin, build_candidates
from teleprompter.submissions import Submission, SubmissionStatus


def _alt(text, order):
    return Alternative("greeting", "spiel_0", text, order)


def _sub(sub_id, text, order, status=SubmissionStatus.APPROVED, by="007"):
    return Submission("greeting", text, order, by, status=status, id=sub_id)


class TestBuildCandidates:
    """Merging base content, alternatives and submissions into one list."""

    def test_order_of_sources(self):
        candidates = build_candidates(
            "  Hello there  ",
            [_alt("Alt two", 2), _alt("Alt one", 1)],
            [_sub(11, "Approved", 3)],
            [_sub(12, "Mine", 4, status=SubmissionStatus.PENDING)],
        )

        assert [c.text for c in candidates] == ["Hello there", "Alt one", "Alt two", "Approved", "Mine"]
        assert [c.origin for c in candidates] == [
            Origin.ORIGINAL, Origin.ALTERNATIVE, Origin.ALTERNATIVE, Origin.SUBMISSION, Origin.SUBMISSION,
        ]
        assert candidates[0].id == "original"
        assert candidates[1].id == "alt:1"
        assert candidates[3].id == "submission:11"

    def test_promoted_text_shown_once(self):
        candidates = build_candidates(
            "Base",
            [_alt("Good morning!", 1), _alt("Other", 2)],
            [_sub(5, "  Good morning!  ", 1)],
        )

        texts = [c.text.strip() for c in candidates]
        assert texts.count("Good morning!") == 1
        promoted = [c for c in candidates if c.text.strip() == "Good morning!"][0]
        assert promoted.origin is Origin.SUBMISSION
        assert promoted.submitted_by == "007"

    def test_own_approved_submission_not_duplicated(self):
        approved = _sub(5, "Shared", 1)
        candidates = build_candidates("Base", [], [approved], [approved, _sub(6, "Draft", 2, SubmissionStatus.PENDING)])

        assert [c.id for c in candidates] == ["original", "submission:5", "submission:6"]

    def test_empty_base_is_skipped(self):
        candidates = build_candidates("   ", [_alt("Only alt", 1)])

        assert len(candidates) == 1
        assert not candidates[0].is_original

    def test_nothing_configured(self):
        assert build_candidates(None) == ()

    def test_to_dict(self):
        candidate = build_candidates("", [], [], [_sub(9, "Mine", 1, SubmissionStatus.REJECTED)])[0]

        assert candidate.to_dict() == {
            "id": "submission:9",
            "text": "Mine",
            "origin": "submission",
            "order": 1,
            "submitted_by": "007",
            "status": "rejected",
        }
