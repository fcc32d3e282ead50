"""Initial casework schema

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False, server_default=True, index=False):
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.func.now() if server_default else None,
        index=index,
    )


def _money(name):
    return sa.Column(name, sa.Numeric(10, 2), nullable=False, server_default="0.00")


def upgrade():
    op.create_table(
        "sites",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
        sa.Column("email_collection_desc", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true(), index=True),
        _timestamp("created_at"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "departments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("slug", sa.String(length=64), nullable=False, unique=True, index=True),
        _timestamp("created_at"),
        _timestamp("deleted_at", nullable=True, server_default=False),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "grants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("grant_code", sa.String(length=64), nullable=True, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        _timestamp("created_at"),
        _timestamp("deleted_at", nullable=True, server_default=False),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=64), nullable=False, unique=True, index=True),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False, index=True),
        sa.Column("is_site_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id"), nullable=True, index=True),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("departments.id"), nullable=True, index=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        _timestamp("last_login_at", nullable=True, server_default=False),
        _timestamp("deleted_at", nullable=True, server_default=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_users_role_active", "users", ["role", "is_active"])

    op.create_table(
        "finance_department_access",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("finance_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("accessible_department_id", sa.Integer(), sa.ForeignKey("departments.id"), nullable=False, index=True),
        _timestamp("granted_at"),
        sa.UniqueConstraint("finance_user_id", "accessible_department_id", name="uq_finance_department_access"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("token_hash", sa.String(length=255), nullable=False, unique=True, index=True),
        sa.Column("csrf_token", sa.String(length=64), nullable=False),
        sa.Column("active_role", sa.String(length=32), nullable=True),
        sa.Column("active_site_id", sa.Integer(), sa.ForeignKey("sites.id"), nullable=True),
        _timestamp("created_at"),
        _timestamp("last_used_at"),
        _timestamp("expires_at", server_default=False, index=True),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.false(), index=True),
        _timestamp("revoked_at", nullable=True, server_default=False),
        sa.Column("revoked_reason", sa.String(length=255), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_session_tokens_user_active", "session_tokens", ["user_id", "is_revoked"])

    op.create_table(
        "api_keys",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("key_hash", sa.String(length=64), nullable=False, unique=True, index=True),
        sa.Column("key_prefix", sa.String(length=12), nullable=False),
        sa.Column("associated_permissions", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("associated_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("associated_site_id", sa.Integer(), sa.ForeignKey("sites.id"), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        _timestamp("created_at"),
        _timestamp("last_used_at", nullable=True, server_default=False),
        _timestamp("revoked_at", nullable=True, server_default=False, index=True),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "agent_api_keys",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("agent_name", sa.String(length=255), nullable=False),
        sa.Column("key_hash", sa.String(length=64), nullable=False, unique=True, index=True),
        sa.Column("key_prefix", sa.String(length=12), nullable=False),
        sa.Column("associated_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("associated_site_id", sa.Integer(), sa.ForeignKey("sites.id"), nullable=True),
        sa.Column("permissions", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("last_used_at", nullable=True, server_default=False),
        _timestamp("revoked_at", nullable=True, server_default=False, index=True),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "vendors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("client_name_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true(), index=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("deleted_at", nullable=True, server_default=False),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True, index=True),
        sa.Column("grant_id", sa.Integer(), sa.ForeignKey("grants.id"), nullable=False, index=True),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("departments.id"), nullable=False, index=True),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id"), nullable=True, index=True),
        sa.Column("fiscal_year_start", sa.Date(), nullable=False),
        sa.Column("fiscal_year_end", sa.Date(), nullable=False),
        sa.Column("budget_type", sa.String(length=8), nullable=False, server_default="Staff"),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("deleted_at", nullable=True, server_default=False, index=True),
        sa.CheckConstraint(
            "(budget_type = 'Staff' AND user_id IS NOT NULL) OR (budget_type = 'Admin' AND user_id IS NULL)",
            name="budget_owner_matches_type",
        ),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_budgets_type_user", "budgets", ["budget_type", "user_id"])

    op.create_table(
        "budget_allocations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("budget_id", sa.Integer(), sa.ForeignKey("budgets.id"), nullable=False, index=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False, index=True),
        sa.Column("client_name", sa.String(length=255), nullable=True),
        sa.Column("voucher_number", sa.String(length=100), nullable=True),
        sa.Column("enrollment_date", sa.Date(), nullable=True),
        sa.Column("class_start_date", sa.Date(), nullable=True),
        sa.Column("purchase_date", sa.Date(), nullable=True),
        sa.Column("program_explanation", sa.Text(), nullable=True),
        sa.Column("payment_status", sa.String(length=4), nullable=False, server_default="U"),
        _money("funding_dw"),
        _money("funding_dw_admin"),
        _money("funding_dw_sus"),
        _money("funding_adult"),
        _money("funding_adult_admin"),
        _money("funding_adult_sus"),
        _money("funding_rr"),
        _money("funding_h1b"),
        _money("funding_youth_is"),
        _money("funding_youth_os"),
        _money("funding_youth_admin"),
        sa.Column("fin_voucher_received", sa.String(length=10), nullable=True),
        sa.Column("fin_accrual_date", sa.Date(), nullable=True),
        sa.Column("fin_obligated_date", sa.Date(), nullable=True),
        sa.Column("fin_comments", sa.Text(), nullable=True),
        sa.Column("fin_expense_code", sa.String(length=100), nullable=True),
        sa.Column("fin_processed_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        _timestamp("fin_processed_at", nullable=True, server_default=False),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("updated_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("deleted_at", nullable=True, server_default=False, index=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("payment_status IN ('U', 'P', 'Void')", name="payment_status_valid"),
        sqlite_autoincrement=True,
    )
    op.create_index(
        "ix_budget_allocations_budget_date",
        "budget_allocations",
        ["budget_id", "transaction_date"],
    )

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=64), nullable=True, unique=True),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True, index=True),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id"), nullable=True, index=True),
        _timestamp("created_at"),
        _timestamp("deleted_at", nullable=True, server_default=False),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "check_ins",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id"), nullable=False, index=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id"), nullable=True, index=True),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("client_email", sa.String(length=255), nullable=True),
        _timestamp("check_in_time", index=True),
        sa.Column("notified_staff_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_check_ins_site_time", "check_ins", ["site_id", "check_in_time"])

    op.create_table(
        "checkin_notes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("check_in_id", sa.Integer(), sa.ForeignKey("check_ins.id"), nullable=False, index=True),
        sa.Column("note_text", sa.Text(), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_by_api_key_id", sa.Integer(), sa.ForeignKey("api_keys.id"), nullable=True),
        _timestamp("created_at"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "forum_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "forum_topics",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("forum_categories.id"), nullable=False, index=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_sticky", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
        _timestamp("last_post_at", nullable=True, server_default=False, index=True),
        sa.Column("last_post_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "forum_posts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("topic_id", sa.Integer(), sa.ForeignKey("forum_topics.id"), nullable=False, index=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_by_api_key_id", sa.Integer(), sa.ForeignKey("api_keys.id"), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at", nullable=True, server_default=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_forum_posts_topic_created", "forum_posts", ["topic_id", "created_at"])

    op.create_table(
        "security_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True, index=True),
        sa.Column("api_key_id", sa.Integer(), nullable=True),
        sa.Column("real_role", sa.String(length=32), nullable=True),
        sa.Column("active_role", sa.String(length=32), nullable=True),
        sa.Column("real_site_id", sa.Integer(), nullable=True),
        sa.Column("active_site_id", sa.Integer(), nullable=True),
        sa.Column("event_type", sa.String(length=64), nullable=False, index=True),
        sa.Column("resource", sa.String(length=128), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, index=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        _timestamp("occurred_at", index=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_security_events_user_type", "security_events", ["user_id", "event_type"])
    op.create_index("ix_security_events_occurred", "security_events", ["occurred_at"])


def downgrade():
    op.drop_index("ix_security_events_occurred", table_name="security_events")
    op.drop_index("ix_security_events_user_type", table_name="security_events")
    op.drop_table("security_events")
    op.drop_index("ix_forum_posts_topic_created", table_name="forum_posts")
    op.drop_table("forum_posts")
    op.drop_table("forum_topics")
    op.drop_table("forum_categories")
    op.drop_table("checkin_notes")
    op.drop_index("ix_check_ins_site_time", table_name="check_ins")
    op.drop_table("check_ins")
    op.drop_table("clients")
    op.drop_index("ix_budget_allocations_budget_date", table_name="budget_allocations")
    op.drop_table("budget_allocations")
    op.drop_index("ix_budgets_type_user", table_name="budgets")
    op.drop_table("budgets")
    op.drop_table("vendors")
    op.drop_table("agent_api_keys")
    op.drop_table("api_keys")
    op.drop_index("ix_session_tokens_user_active", table_name="session_tokens")
    op.drop_table("session_tokens")
    op.drop_table("finance_department_access")
    op.drop_index("ix_users_role_active", table_name="users")
    op.drop_table("users")
    op.drop_table("grants")
    op.drop_table("departments")
    op.drop_table("sites")
