"""initial timesheet schema

Revision ID: 3c1d9e7a52b0
Revises:
Create Date: 2026-10-18 09:40:12.418220

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1d9e7a52b0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NOW = sa.text("CURRENT_TIMESTAMP")


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("abbreviation", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("email_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.UniqueConstraint("name", name="uq_companies_name"),
        sa.UniqueConstraint("abbreviation", name="uq_companies_abbreviation"),
    )
    op.create_index("ix_companies_id", "companies", ["id"], unique=False)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="program_manager"),
        sa.Column("company_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "role IN ('admin', 'program_manager', 'accountant')",
            name="ck_users_role",
        ),
    )
    op.create_index("ix_users_id", "users", ["id"], unique=False)
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_company_id", "users", ["company_id"], unique=False)

    op.create_table(
        "user_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("token", sa.String(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_user_sessions_id", "user_sessions", ["id"], unique=False)
    op.create_index("ix_user_sessions_token", "user_sessions", ["token"], unique=True)
    op.create_index("ix_user_sessions_user_id", "user_sessions", ["user_id"], unique=False)

    op.create_table(
        "job_types",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
    )
    op.create_index("ix_job_types_id", "job_types", ["id"], unique=False)
    op.create_index("ix_job_types_code", "job_types", ["code"], unique=True)

    op.create_table(
        "crew_chiefs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("employee_code", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.UniqueConstraint("company_id", "name", name="uq_crew_chiefs_company_name"),
    )
    op.create_index("ix_crew_chiefs_id", "crew_chiefs", ["id"], unique=False)
    op.create_index("ix_crew_chiefs_company_id", "crew_chiefs", ["company_id"], unique=False)

    op.create_table(
        "timesheet_entries",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("unique_id", sa.String(), nullable=False),
        sa.Column("job_id", sa.String(), nullable=False),
        sa.Column("job_type", sa.String(), nullable=True),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("crew_chief_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["crew_chief_id"], ["crew_chiefs.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("unique_id", name="uq_timesheet_entries_unique_id"),
    )
    op.create_index("ix_timesheet_entries_id", "timesheet_entries", ["id"], unique=False)
    op.create_index("ix_timesheet_entries_job_id", "timesheet_entries", ["job_id"], unique=False)
    op.create_index("ix_timesheet_entries_company_id", "timesheet_entries", ["company_id"], unique=False)
    op.create_index("ix_timesheet_entries_crew_chief_id", "timesheet_entries", ["crew_chief_id"], unique=False)
    op.create_index("ix_timesheet_entries_user_id", "timesheet_entries", ["user_id"], unique=False)
    op.create_index("ix_timesheet_entries_entry_date", "timesheet_entries", ["entry_date"], unique=False)

    op.create_table(
        "time_intervals",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("timesheet_entry_id", sa.Integer(), nullable=False),
        sa.Column("time_in", sa.Time(), nullable=False),
        sa.Column("time_out", sa.Time(), nullable=False),
        sa.ForeignKeyConstraint(["timesheet_entry_id"], ["timesheet_entries.id"], ondelete="CASCADE"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_time_intervals_id", "time_intervals", ["id"], unique=False)
    op.create_index(
        "ix_time_intervals_timesheet_entry_id", "time_intervals", ["timesheet_entry_id"], unique=False
    )

    op.create_table(
        "job_id_reservations",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("job_id", sa.String(), nullable=False),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.UniqueConstraint("job_id", name="uq_job_id_reservations_job_id"),
    )
    op.create_index("ix_job_id_reservations_id", "job_id_reservations", ["id"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_job_id_reservations_id", table_name="job_id_reservations")
    op.drop_table("job_id_reservations")

    op.drop_index("ix_time_intervals_timesheet_entry_id", table_name="time_intervals")
    op.drop_index("ix_time_intervals_id", table_name="time_intervals")
    op.drop_table("time_intervals")

    for name in ("entry_date", "user_id", "crew_chief_id", "company_id", "job_id", "id"):
        op.drop_index(f"ix_timesheet_entries_{name}", table_name="timesheet_entries")
    op.drop_table("timesheet_entries")

    op.drop_index("ix_crew_chiefs_company_id", table_name="crew_chiefs")
    op.drop_index("ix_crew_chiefs_id", table_name="crew_chiefs")
    op.drop_table("crew_chiefs")

    op.drop_index("ix_job_types_code", table_name="job_types")
    op.drop_index("ix_job_types_id", table_name="job_types")
    op.drop_table("job_types")

    op.drop_index("ix_user_sessions_user_id", table_name="user_sessions")
    op.drop_index("ix_user_sessions_token", table_name="user_sessions")
    op.drop_index("ix_user_sessions_id", table_name="user_sessions")
    op.drop_table("user_sessions")

    op.drop_index("ix_users_company_id", table_name="users")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")

    op.drop_index("ix_companies_id", table_name="companies")
    op.drop_table("companies")
