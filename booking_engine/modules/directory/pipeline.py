"""Candidate pipeline ordering."""

PIPELINE_ORDER = (
    "new",
    "screening",
    "invite_sent",
    "interview_scheduled",
    "interview_complete",
    "trial_invited",
    "trial_scheduled",
    "trial_complete",
    "approved",
    "hired",
)
TERMINAL_STATUSES = frozenset({"rejected", "withdrawn"})
ALL_STATUSES = frozenset(PIPELINE_ORDER) | TERMINAL_STATUSES

# Still waiting on a booking link: the expired-link sweep withdraws these
WAITING_TO_BOOK = frozenset({"invite_sent", "trial_invited"})

# Moving into any of these resolves the candidate's lapsed interviews
AUTO_RESOLVE_STATUSES = frozenset({"withdrawn", "rejected", "trial_scheduled", "trial_complete", "approved", "hired"})

# Moving into any of these cancels the candidate's upcoming interviews
CANCEL_UPCOMING_STATUSES = TERMINAL_STATUSES

# Status a candidate moves to once a booking of that kind is made / held
SCHEDULED_STATUS = {"interview": "interview_scheduled", "trial": "trial_scheduled"}
COMPLETE_STATUS = {"interview": "interview_complete", "trial": "trial_complete"}


def rank(status: str | None) -> int:
    """Position in the pipeline; -1 for terminal or unknown statuses."""
    try:
        return PIPELINE_ORDER.index(status)
    except ValueError:
        return -1


def is_forward(current: str | None, target: str) -> bool:
    if current in TERMINAL_STATUSES:
        return False
    return rank(target) > rank(current)


def has_moved_past(status: str | None, kind: str) -> bool:
    """True when an interview of ``kind`` no longer matters for the candidate."""
    if status in TERMINAL_STATUSES:
        return True
    return rank(status) >= rank(COMPLETE_STATUS[kind])
