"""initial ledger schema

Revision ID: 202601050900
Revises:
Create Date: 2026-01-05 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202601050900"
down_revision = None
branch_labels = None
depends_on = None


def _transaction_type():
    return sa.Enum("income", "expense", name="transactiontype")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column(
            "fiscal_start_month", sa.Integer(), nullable=False, server_default="1"
        ),
        *_timestamps(),
        sa.CheckConstraint(
            "fiscal_start_month BETWEEN 1 AND 12", name="ck_org_fiscal_start_month"
        ),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Integer(),
            sa.ForeignKey("organizations.id"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("category_type", _transaction_type(), nullable=False),
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("categories.id")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint(
            "organization_id", "parent_id", "name", name="uq_category_org_parent_name"
        ),
    )
    op.create_index("ix_categories_org", "categories", ["organization_id"])

    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Integer(),
            sa.ForeignKey("organizations.id"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "account_type",
            sa.Enum(
                "checking",
                "savings",
                "credit_card",
                "cash",
                "other",
                name="accounttype",
            ),
            nullable=False,
        ),
        sa.Column(
            "opening_balance",
            sa.Numeric(12, 2),
            nullable=False,
            server_default="0",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "recurring_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Integer(),
            sa.ForeignKey("organizations.id"),
            nullable=False,
        ),
        sa.Column(
            "account_id", sa.Integer(), sa.ForeignKey("accounts.id"), nullable=False
        ),
        sa.Column("transaction_type", _transaction_type(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("vendor", sa.String(length=255)),
        sa.Column("check_number", sa.String(length=50)),
        sa.Column(
            "recurrence_rule",
            sa.Enum(
                "weekly",
                "bi-weekly",
                "monthly",
                "quarterly",
                "annually",
                name="recurrencerule",
            ),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date()),
        sa.Column("next_occurrence_date", sa.Date()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_template_amount_positive"),
    )
    op.create_index(
        "ix_templates_active_next",
        "recurring_templates",
        ["is_active", "next_occurrence_date"],
    )

    op.create_table(
        "recurring_template_line_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "template_id",
            sa.Integer(),
            sa.ForeignKey("recurring_templates.id"),
            nullable=False,
        ),
        sa.Column(
            "category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=False
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("memo", sa.Text()),
        *_timestamps(),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "account_id", sa.Integer(), sa.ForeignKey("accounts.id"), nullable=False
        ),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("transaction_type", _transaction_type(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("uncleared", "cleared", "reconciled", name="transactionstatus"),
            nullable=False,
        ),
        sa.Column("cleared_at", sa.DateTime()),
        sa.Column("description", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("vendor", sa.String(length=255)),
        sa.Column("check_number", sa.String(length=50)),
        sa.Column("template_id", sa.Integer(), sa.ForeignKey("recurring_templates.id")),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="ck_transactions_amount_positive"),
    )
    op.create_index(
        "ix_transactions_account_date_created",
        "transactions",
        ["account_id", "transaction_date", "created_at"],
    )
    op.create_index(
        "ix_transactions_account_status", "transactions", ["account_id", "status"]
    )
    op.create_index(
        "ix_transactions_template_date",
        "transactions",
        ["template_id", "transaction_date"],
    )

    op.create_table(
        "transaction_line_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "transaction_id",
            sa.Integer(),
            sa.ForeignKey("transactions.id"),
            nullable=False,
        ),
        sa.Column(
            "category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=False
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("memo", sa.Text()),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="ck_line_items_amount_positive"),
    )
    op.create_index(
        "ix_line_items_category", "transaction_line_items", ["category_id"]
    )

    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Integer(),
            sa.ForeignKey("organizations.id"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("draft", "active", "closed", name="budgetstatus"),
            nullable=False,
        ),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
        sa.CheckConstraint("end_date >= start_date", name="ck_budget_date_order"),
    )

    op.create_table(
        "budget_line_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "budget_id", sa.Integer(), sa.ForeignKey("budgets.id"), nullable=False
        ),
        sa.Column(
            "category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=False
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="ck_budget_line_amount_positive"),
        sa.UniqueConstraint("budget_id", "category_id", name="uq_budget_line_category"),
    )

    op.create_table(
        "reconciliation_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "account_id", sa.Integer(), sa.ForeignKey("accounts.id"), nullable=False
        ),
        sa.Column("statement_date", sa.Date(), nullable=False),
        sa.Column("statement_ending_balance", sa.Numeric(12, 2), nullable=False),
        sa.Column("starting_balance", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "in_progress", "completed", "cancelled", name="reconciliationstatus"
            ),
            nullable=False,
        ),
        sa.Column("completed_at", sa.DateTime()),
        sa.Column("transaction_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index(
        "ix_reconciliation_account_status",
        "reconciliation_sessions",
        ["account_id", "status"],
    )


def downgrade():
    op.drop_index("ix_reconciliation_account_status", "reconciliation_sessions")
    op.drop_table("reconciliation_sessions")
    op.drop_table("budget_line_items")
    op.drop_table("budgets")
    op.drop_index("ix_line_items_category", "transaction_line_items")
    op.drop_table("transaction_line_items")
    op.drop_index("ix_transactions_template_date", "transactions")
    op.drop_index("ix_transactions_account_status", "transactions")
    op.drop_index("ix_transactions_account_date_created", "transactions")
    op.drop_table("transactions")
    op.drop_table("recurring_template_line_items")
    op.drop_index("ix_templates_active_next", "recurring_templates")
    op.drop_table("recurring_templates")
    op.drop_table("accounts")
    op.drop_index("ix_categories_org", "categories")
    op.drop_table("categories")
    op.drop_table("organizations")
