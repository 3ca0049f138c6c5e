"""
Audit the bracket for integrity problems.

Checks:
1. Round stage names that are not in the configured STAGE_ORDER.
2. Stages where a team is recorded as winning more than one round.
3. Teams paired into a stage without having won the stage before it.
4. Teams whose current_round_stage lags behind or runs ahead of their
   results (e.g. a decided round was removed by hand).
5. Rounds past their window where the assigned judge still owes marks.

Only (4) can be repaired automatically: it is pure bookkeeping, derived
from the recorded winners.

Usage:
    # Report only:
    python scripts/audit_bracket.py

    # Re-sync team stages from recorded winners:
    python scripts/audit_bracket.py --apply
"""

import argparse
import logging
import sys

sys.path.insert(0, "src")

from mootbracket.bracket.eligibility import EligibilityResolver
from mootbracket.bracket.lifecycle import RoundLifecycle
from mootbracket.bracket.winner import expected_team_stages
from mootbracket.config import settings
from mootbracket.db import BracketRepository, get_session
from mootbracket.db.models import Judge, Round
from mootbracket.errors import InconsistentBracketError
from mootbracket.scoring.aggregator import ScoreAggregator
from mootbracket.stages import StageOrder, validate_stage_names


def main():
    parser = argparse.ArgumentParser(description="Audit bracket integrity")
    parser.add_argument(
        "--apply", action="store_true",
        help="Re-sync team current_round_stage from results (default is report only)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level, format=settings.log_format)
    stages = StageOrder.from_settings()
    problems = 0

    with get_session() as session:
        repo = BracketRepository(session)
        resolver = EligibilityResolver(repo, stages)

        # ---------------------------------------------------------------
        # 1. Unknown stage names
        # ---------------------------------------------------------------
        stored = [row[0] for row in session.query(Round.stage).distinct().all()]
        for warning in validate_stage_names(stages, stored):
            print(f"  STAGE: {warning}")
            problems += 1

        # ---------------------------------------------------------------
        # 2 + 3. Winners and pairings stage by stage
        # ---------------------------------------------------------------
        winners_by_stage: dict[str, set[int]] = {}
        for stage in stages:
            try:
                winners_by_stage[stage] = resolver.stage_winner_ids(stage)
            except InconsistentBracketError as exc:
                print(f"  WINNERS: {exc.message}")
                problems += 1

        for stage in stages:
            prior = stages.previous_stage(stage)
            if prior is None or prior not in winners_by_stage:
                continue
            stray = resolver.paired_team_ids(stage) - winners_by_stage[prior]
            for team_id in sorted(stray):
                team = repo.get_team(team_id)
                print(f"  PAIRING: {team.team_id} is paired at {stage} without winning at {prior}")
                problems += 1

        # ---------------------------------------------------------------
        # 4. Team stage bookkeeping
        # ---------------------------------------------------------------
        drift = []
        for team_id, stage in expected_team_stages(repo, stages).items():
            team = repo.get_team(team_id)
            if team.current_round_stage != stage:
                drift.append((team, stage))
                ahead = stages.sort_key(team.current_round_stage or stage) > stages.sort_key(stage)
                print(
                    f"  STAGE DRIFT: {team.team_id} is at {team.current_round_stage}, expected {stage}"
                    + (" (ahead of its results)" if ahead else "")
                )

        # ---------------------------------------------------------------
        # 5. Outstanding marks
        # ---------------------------------------------------------------
        lifecycle = RoundLifecycle(ScoreAggregator(repo))
        for judge in session.query(Judge).order_by(Judge.name).all():
            owed = lifecycle.rounds_missing_marks(judge.id)
            if owed:
                round_list = ", ".join(f"#{r.id} ({r.stage})" for r in owed)
                print(f"  MARKS: {judge.name} owes marks for {round_list}")

        print(f"\n{'=' * 60}")
        print("Summary:")
        print(f"  Integrity problems:  {problems}")
        print(f"  Team stage drift:    {len(drift)}")

        if drift and args.apply:
            for team, stage in drift:
                team.current_round_stage = stage
            session.flush()
            print(f"\nRe-synced {len(drift)} team stage(s).")
        elif drift:
            print("\nRun with --apply to re-sync team stages.")

    return 1 if problems else 0


if __name__ == "__main__":
    sys.exit(main())
