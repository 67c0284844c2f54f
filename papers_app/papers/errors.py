from __future__ import annotations


class CycleError(Exception):
    pass


class CycleConfigError(CycleError):
    pass


class NoApplicableRankingRule(CycleConfigError):
    def __init__(self, submission_count: int) -> None:
        super().__init__(f"no ranking rule covers {submission_count} submission(s)")
        self.submission_count = submission_count


class CyclePhaseError(CycleError):
    pass


class InvalidBallot(CycleError):
    pass


class AlreadyVotedError(CycleError):
    pass


class SubmissionError(CycleError):
    pass


class InvalidTokenError(CycleError):
    pass


class StorageError(CycleError):
    pass


class StorageConflict(StorageError):
    """A uniqueness constraint rejected an insert; another writer got there first."""


class StorageUnavailable(StorageError):
    pass
