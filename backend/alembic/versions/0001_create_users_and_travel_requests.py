"""create_users_and_travel_requests

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Creates the users table and the soft-deletable travel_requests table.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum("admin", "user", name="userrole")
travel_request_status = sa.Enum("requested", "approved", "cancelled", name="travelrequeststatus")


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False, server_default=""),
        sa.Column("role", user_role, nullable=False, server_default="user"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # --- travel_requests ---
    op.create_table(
        "travel_requests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("requester_name", sa.String(255), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("status", travel_request_status, nullable=False, server_default="requested"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column(
            "approved_by", sa.String(36),
            sa.ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column(
            "cancelled_by", sa.String(36),
            sa.ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("cancelled_reason", sa.Text, nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_travel_requests_user_created", "travel_requests", ["user_id", "created_at"])
    op.create_index("ix_travel_requests_status", "travel_requests", ["status"])


def downgrade() -> None:
    op.drop_index("ix_travel_requests_status", table_name="travel_requests")
    op.drop_index("ix_travel_requests_user_created", table_name="travel_requests")
    op.drop_table("travel_requests")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    travel_request_status.drop(op.get_bind(), checkfirst=True)
    user_role.drop(op.get_bind(), checkfirst=True)
