"""Create teams, judges, rounds and score_sheets tables

Revision ID: 5a1d0c3e9b72
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# Revision identifiers, used by Alembic.
revision: str = "5a1d0c3e9b72"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# (column, max points) in score sheet order
CRITERIA = (
    ("knowledge_of_law", 20),
    ("application_of_law_to_facts", 20),
    ("ingenuity_and_ability_to_answer_questions", 15),
    ("persuasiveness", 15),
    ("time_management_and_organization", 10),
    ("style_poise_courtesy_and_demeanor", 10),
    ("language_and_presentation", 10),
)


def upgrade() -> None:
    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.String(length=50), nullable=False),
        sa.Column("representative_name", sa.String(length=255), nullable=False),
        sa.Column("institution_name", sa.String(length=255), nullable=False),
        sa.Column("current_round_stage", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("team_id"),
    )

    op.create_table(
        "judges",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "rounds",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("stage", sa.String(length=50), nullable=False),
        sa.Column("team1_id", sa.Integer(), nullable=True),
        sa.Column("team2_id", sa.Integer(), nullable=True),
        sa.Column("judge_id", sa.Integer(), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("location_mode", sa.String(length=10), nullable=False),
        sa.Column("venue", sa.String(length=255), nullable=True),
        sa.Column("meeting_url", sa.String(length=500), nullable=True),
        sa.Column("winner_id", sa.Integer(), nullable=True),
        sa.Column("decided_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["team1_id"], ["teams.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["team2_id"], ["teams.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["winner_id"], ["teams.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["judge_id"], ["judges.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "team1_id IS NULL OR team2_id IS NULL OR team1_id <> team2_id",
            name="ck_rounds_distinct_teams",
        ),
        sa.CheckConstraint(
            "winner_id IS NULL OR winner_id = team1_id OR winner_id = team2_id",
            name="ck_rounds_winner_in_round",
        ),
        sa.CheckConstraint(
            "location_mode IN ('offline', 'online')",
            name="ck_rounds_location_mode",
        ),
        sa.CheckConstraint("duration_minutes > 0", name="ck_rounds_duration_positive"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_rounds_stage", "rounds", ["stage"], unique=False)
    op.create_index("idx_rounds_team1", "rounds", ["team1_id"], unique=False)
    op.create_index("idx_rounds_team2", "rounds", ["team2_id"], unique=False)
    op.create_index("idx_rounds_judge", "rounds", ["judge_id"], unique=False)
    op.create_index("idx_rounds_stage_winner", "rounds", ["stage", "winner_id"], unique=False)

    op.create_table(
        "score_sheets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("round_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("judge_id", sa.Integer(), nullable=False),
        *(
            sa.Column(name, sa.Numeric(precision=5, scale=2), nullable=False)
            for name, _ in CRITERIA
        ),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["round_id"], ["rounds.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["judge_id"], ["judges.id"], ondelete="RESTRICT"),
        *(
            sa.CheckConstraint(
                f"{name} >= 0 AND {name} <= {max_points}",
                name=f"ck_sheet_{name}_range",
            )
            for name, max_points in CRITERIA
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("round_id", "team_id", "judge_id", name="uq_score_sheet_round_team_judge"),
    )
    op.create_index(
        "idx_score_sheets_round_team", "score_sheets", ["round_id", "team_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index("idx_score_sheets_round_team", table_name="score_sheets")
    op.drop_table("score_sheets")
    op.drop_index("idx_rounds_stage_winner", table_name="rounds")
    op.drop_index("idx_rounds_judge", table_name="rounds")
    op.drop_index("idx_rounds_team2", table_name="rounds")
    op.drop_index("idx_rounds_team1", table_name="rounds")
    op.drop_index("idx_rounds_stage", table_name="rounds")
    op.drop_table("rounds")
    op.drop_table("judges")
    op.drop_table("teams")
