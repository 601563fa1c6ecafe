"""Initial schema - users, friendships, direct messages, shared plans, notifications

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("avatar_url", sa.String(1024), nullable=True),
        sa.Column("avatar_type", sa.String(10), nullable=False, server_default="initial"),
        sa.Column("bio", sa.String(500), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("is_banned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("ban_reason", sa.String(500), nullable=True),
        sa.Column("warnings", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    # Friendships
    op.create_table(
        "friendships",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id_1", sa.Uuid(), nullable=False),
        sa.Column("user_id_2", sa.Uuid(), nullable=False),
        sa.Column("requester_id", sa.Uuid(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_friendships"),
        sa.ForeignKeyConstraint(["user_id_1"], ["users.id"], name="fk_friendships_user_id_1_users", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id_2"], ["users.id"], name="fk_friendships_user_id_2_users", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["requester_id"], ["users.id"], name="fk_friendships_requester_id_users", ondelete="CASCADE"),
        sa.UniqueConstraint("user_id_1", "user_id_2", name="uq_friendships_pair"),
        sa.CheckConstraint("user_id_1 < user_id_2", name="ck_friendships_canonical_order"),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'blocked')",
            name="ck_friendships_status",
        ),
    )
    op.create_index("ix_friendships_user_id_1", "friendships", ["user_id_1"])
    op.create_index("ix_friendships_user_id_2", "friendships", ["user_id_2"])
    op.create_index("ix_friendships_status", "friendships", ["status"])

    # Direct messages
    op.create_table(
        "direct_messages",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("conversation_id", sa.String(80), nullable=False),
        sa.Column("sender_id", sa.Uuid(), nullable=False),
        sa.Column("recipient_id", sa.Uuid(), nullable=False),
        sa.Column("content", sa.String(2000), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_direct_messages"),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], name="fk_direct_messages_sender_id_users", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["recipient_id"], ["users.id"], name="fk_direct_messages_recipient_id_users", ondelete="CASCADE"),
    )
    op.create_index("ix_direct_messages_sender_id", "direct_messages", ["sender_id"])
    op.create_index("ix_direct_messages_recipient_id", "direct_messages", ["recipient_id"])
    op.create_index(
        "ix_direct_messages_conversation_created", "direct_messages", ["conversation_id", "created_at"]
    )
    op.create_index("ix_direct_messages_recipient_read", "direct_messages", ["recipient_id", "read"])

    # Shared plans
    op.create_table(
        "shared_plans",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_shared_plans"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], name="fk_shared_plans_owner_id_users", ondelete="CASCADE"),
    )
    op.create_index("ix_shared_plans_owner_id", "shared_plans", ["owner_id"])

    # Shared plan members (editors and viewers; the owner lives on shared_plans)
    op.create_table(
        "shared_plan_members",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("plan_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("role", sa.String(10), nullable=False, server_default="editor"),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_shared_plan_members"),
        sa.ForeignKeyConstraint(["plan_id"], ["shared_plans.id"], name="fk_shared_plan_members_plan_id_shared_plans", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_shared_plan_members_user_id_users", ondelete="CASCADE"),
        sa.UniqueConstraint("plan_id", "user_id", name="uq_shared_plan_members_pair"),
        sa.CheckConstraint("role IN ('editor', 'viewer')", name="ck_shared_plan_members_role"),
    )
    op.create_index("ix_shared_plan_members_plan_id", "shared_plan_members", ["plan_id"])
    op.create_index("ix_shared_plan_members_user_id", "shared_plan_members", ["user_id"])

    # Shared plan tasks
    op.create_table(
        "shared_plan_tasks",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("plan_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.String(1000), nullable=False, server_default=""),
        sa.Column("assigned_to", sa.Uuid(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_shared_plan_tasks"),
        sa.ForeignKeyConstraint(["plan_id"], ["shared_plans.id"], name="fk_shared_plan_tasks_plan_id_shared_plans", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assigned_to"], ["users.id"], name="fk_shared_plan_tasks_assigned_to_users", ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], name="fk_shared_plan_tasks_created_by_users", ondelete="CASCADE"),
    )
    op.create_index("ix_shared_plan_tasks_plan_id", "shared_plan_tasks", ["plan_id"])

    # Shared plan invitations
    op.create_table(
        "shared_plan_invitations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("plan_id", sa.Uuid(), nullable=False),
        sa.Column("invited_by", sa.Uuid(), nullable=False),
        sa.Column("invited_user", sa.Uuid(), nullable=False),
        sa.Column("role", sa.String(10), nullable=False, server_default="editor"),
        sa.Column("status", sa.String(10), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_shared_plan_invitations"),
        sa.ForeignKeyConstraint(["plan_id"], ["shared_plans.id"], name="fk_shared_plan_invitations_plan_id_shared_plans", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["invited_by"], ["users.id"], name="fk_shared_plan_invitations_invited_by_users", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["invited_user"], ["users.id"], name="fk_shared_plan_invitations_invited_user_users", ondelete="CASCADE"),
    )
    op.create_index("ix_shared_plan_invitations_plan_id", "shared_plan_invitations", ["plan_id"])
    op.create_index("ix_shared_plan_invitations_invited_user", "shared_plan_invitations", ["invited_user"])
    op.create_index(
        "uq_shared_plan_invitations_pending",
        "shared_plan_invitations",
        ["plan_id", "invited_user"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    # Shared plan messages
    op.create_table(
        "shared_plan_messages",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("plan_id", sa.Uuid(), nullable=False),
        sa.Column("sender_id", sa.Uuid(), nullable=False),
        sa.Column("content", sa.String(2000), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_shared_plan_messages"),
        sa.ForeignKeyConstraint(["plan_id"], ["shared_plans.id"], name="fk_shared_plan_messages_plan_id_shared_plans", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], name="fk_shared_plan_messages_sender_id_users", ondelete="CASCADE"),
    )
    op.create_index("ix_shared_plan_messages_plan_created", "shared_plan_messages", ["plan_id", "created_at"])

    # Notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("message", sa.String(500), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("related_id", sa.String(64), nullable=True),
        sa.Column("action_taken", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("dedup_key", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_notifications"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_notifications_user_id_users", ondelete="CASCADE"),
        sa.UniqueConstraint("dedup_key", name="uq_notifications_dedup_key"),
    )
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("shared_plan_messages")
    op.drop_table("shared_plan_invitations")
    op.drop_table("shared_plan_tasks")
    op.drop_table("shared_plan_members")
    op.drop_table("shared_plans")
    op.drop_table("direct_messages")
    op.drop_table("friendships")
    op.drop_table("users")
