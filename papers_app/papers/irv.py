from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence


def _format_counts(vote_counts: Mapping[int, int]) -> str:
    return ", ".join(f"#{cid}: {count}" for cid, count in sorted(vote_counts.items()))


def _round_summary(
    *,
    round_number: int,
    vote_counts: Mapping[int, int],
    winner: int | None = None,
    eliminated: int | None = None,
    reason: str = "",
) -> str:
    counts = _format_counts(vote_counts) or "no votes"
    if winner is not None:
        suffix = f" ({reason})" if reason else ""
        return f"Round {round_number}: {counts}. Submission #{winner} wins{suffix}."
    return f"Round {round_number}: {counts}. Submission #{eliminated} is eliminated."


def _round(
    *,
    round_number: int,
    vote_counts: Mapping[int, int],
    exhausted: int,
    winner: int | None = None,
    eliminated: int | None = None,
    reason: str = "",
) -> dict[str, object]:
    data: dict[str, object] = {
        "round": round_number,
        # JSON object keys are strings; keep them that way so persisted rounds round-trip unchanged.
        "vote_counts": {str(cid): count for cid, count in sorted(vote_counts.items())},
        "exhausted": exhausted,
    }
    if winner is not None:
        data["winner"] = winner
    if eliminated is not None:
        data["eliminated"] = eliminated
    data["summary_text"] = _round_summary(
        round_number=round_number,
        vote_counts=vote_counts,
        winner=winner,
        eliminated=eliminated,
        reason=reason,
    )
    return data


def _current_preference(ballot: Sequence[int], active: set[int]) -> int | None:
    for cid in ballot:
        if cid in active:
            return cid
    return None


def tally_instant_runoff(
    *,
    candidates: Iterable[int],
    ballots: Sequence[Sequence[int]],
) -> dict[str, object]:
    """Pick a single winner by instant-runoff voting.

    ``ballots`` are submission ids in preference order (rank 1 first). Ballots
    are assumed to have been validated when they were accepted; ids outside
    ``candidates`` are ignored rather than rejected.

    Deterministic:
    - Majority means at least floor(total_ballots / 2) + 1 current preferences.
    - When every active candidate shares the minimum, the lowest id wins.
    - Otherwise the lowest id among the candidates at the minimum is eliminated.
    - With no ballots at all the lowest candidate id is picked.

    Never raises for well-formed input, so a completed cycle always yields a result.
    """

    candidate_ids = sorted({int(cid) for cid in candidates})
    total_ballots = len(ballots)
    rounds: list[dict[str, object]] = []

    if not candidate_ids:
        return {"winner": None, "rounds": rounds, "total_ballots": total_ballots}

    if total_ballots == 0:
        winner = candidate_ids[0]
        rounds.append(
            _round(
                round_number=1,
                vote_counts={winner: 0},
                exhausted=0,
                winner=winner,
                reason="no ballots were cast",
            )
        )
        return {"winner": winner, "rounds": rounds, "total_ballots": total_ballots}

    if len(candidate_ids) == 1:
        winner = candidate_ids[0]
        rounds.append(
            _round(
                round_number=1,
                vote_counts={winner: total_ballots},
                exhausted=0,
                winner=winner,
                reason="only submission",
            )
        )
        return {"winner": winner, "rounds": rounds, "total_ballots": total_ballots}

    active: set[int] = set(candidate_ids)
    majority_threshold = total_ballots // 2 + 1
    preferences: list[int | None] = [_current_preference(ballot, active) for ballot in ballots]

    while len(active) > 1:
        round_number = len(rounds) + 1

        vote_counts: dict[int, int] = {cid: 0 for cid in active}
        exhausted = 0
        for preference in preferences:
            if preference is None:
                exhausted += 1
                continue
            vote_counts[preference] += 1

        majority = [cid for cid in sorted(vote_counts) if vote_counts[cid] >= majority_threshold]
        if majority:
            winner = majority[0]
            rounds.append(
                _round(
                    round_number=round_number,
                    vote_counts=vote_counts,
                    exhausted=exhausted,
                    winner=winner,
                    reason="majority",
                )
            )
            return {"winner": winner, "rounds": rounds, "total_ballots": total_ballots}

        min_votes = min(vote_counts.values())
        lowest = sorted(cid for cid, count in vote_counts.items() if count == min_votes)

        if len(lowest) == len(active):
            winner = lowest[0]
            rounds.append(
                _round(
                    round_number=round_number,
                    vote_counts=vote_counts,
                    exhausted=exhausted,
                    winner=winner,
                    reason="all remaining submissions tied; lowest id wins",
                )
            )
            return {"winner": winner, "rounds": rounds, "total_ballots": total_ballots}

        eliminated = lowest[0]
        active.remove(eliminated)
        rounds.append(
            _round(
                round_number=round_number,
                vote_counts=vote_counts,
                exhausted=exhausted,
                eliminated=eliminated,
            )
        )

        for idx, preference in enumerate(preferences):
            if preference == eliminated:
                preferences[idx] = _current_preference(ballots[idx], active)

    # Reachable when exhausted ballots keep the last two candidates below majority.
    (winner,) = active
    credited = sum(1 for preference in preferences if preference == winner)
    rounds.append(
        _round(
            round_number=len(rounds) + 1,
            vote_counts={winner: credited},
            exhausted=total_ballots - credited,
            winner=winner,
            reason="last remaining submission",
        )
    )
    return {"winner": winner, "rounds": rounds, "total_ballots": total_ballots}
