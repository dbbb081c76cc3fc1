"""bank statement, transaction, ledger, memo match and dues snapshot tables

Revision ID: 0002_finance_core
Revises: 0001_create_users_and_roles
Create Date: 2025-11-04
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0002_finance_core"
down_revision = "0001_create_users_and_roles"
branch_labels = None
depends_on = None

BANK_STATUS = sa.Enum("PENDING", "MATCHED", "IGNORED", name="bank_transaction_status")
PAYMENT_TYPE = sa.Enum(
    "membership_due",
    "tithe",
    "offering",
    "donation",
    "pledge_payment",
    "vow",
    "building_fund",
    "event",
    "religious_item_sales",
    "tigray_hunger_fundraiser",
    "other",
    name="transaction_payment_type",
)
PAYMENT_METHOD = sa.Enum(
    "cash", "check", "zelle", "credit_card", "debit_card", "ach", "other", name="transaction_payment_method"
)
TRANSACTION_STATUS = sa.Enum("pending", "succeeded", "failed", "canceled", name="transaction_status")
LEDGER_TYPE = sa.Enum("income", "expense", name="ledger_entry_type")
LEDGER_SOURCE = sa.Enum("manual", "bank_import", "email_import", name="ledger_source_system")

MONTHS = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)


def _money(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable, server_default=None if nullable else "0")


def upgrade() -> None:
    op.create_table(
        "bank_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_hash", sa.String(length=64), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("balance", sa.Numeric(12, 2), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False, server_default="OTHER"),
        sa.Column("status", BANK_STATUS, nullable=False, server_default="PENDING"),
        sa.Column("payer_name", sa.String(length=255), nullable=True),
        sa.Column("external_ref_id", sa.String(length=100), nullable=True),
        sa.Column("check_number", sa.String(length=50), nullable=True),
        sa.Column("raw_data", sa.JSON(), nullable=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_bank_transactions_transaction_hash", "bank_transactions", ["transaction_hash"], unique=True)
    op.create_index("ix_bank_transactions_date", "bank_transactions", ["date"])
    op.create_index("ix_bank_transactions_status", "bank_transactions", ["status"])
    op.create_index("ix_bank_transactions_member_id", "bank_transactions", ["member_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="SET NULL"), nullable=True),
        sa.Column("collected_by", sa.Integer(), sa.ForeignKey("members.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("payment_type", PAYMENT_TYPE, nullable=False),
        sa.Column("payment_method", PAYMENT_METHOD, nullable=False),
        sa.Column("status", TRANSACTION_STATUS, nullable=False, server_default="succeeded"),
        sa.Column("external_id", sa.String(length=255), nullable=True, unique=True),
        sa.Column("note", sa.String(length=500), nullable=True),
        sa.Column("donor_name", sa.String(length=255), nullable=True),
        sa.Column("donor_type", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_transactions_member_id", "transactions", ["member_id"])
    op.create_index("ix_transactions_payment_date", "transactions", ["payment_date"])
    op.create_index("ix_transactions_payment_type", "transactions", ["payment_type"])

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("type", LEDGER_TYPE, nullable=False),
        sa.Column("gl_code", sa.String(length=20), nullable=False),
        sa.Column("memo", sa.String(length=500), nullable=True),
        sa.Column("source_system", LEDGER_SOURCE, nullable=False, server_default="manual"),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        sa.Column("external_id", sa.String(length=255), nullable=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="SET NULL"), nullable=True),
        sa.Column("collector_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_ledger_entries_transaction_id", "ledger_entries", ["transaction_id"])
    op.create_index("ix_ledger_entries_entry_date", "ledger_entries", ["entry_date"])
    op.create_index("ix_ledger_entries_gl_code", "ledger_entries", ["gl_code"])

    op.create_table(
        "memo_matches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
        sa.Column("memo", sa.String(length=500), nullable=False, unique=True),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_memo_matches_member_id", "memo_matches", ["member_id"])

    op.create_table(
        "member_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="SET NULL"), nullable=True),
        sa.Column("member_name", sa.String(length=255), nullable=True),
        sa.Column("phone1", sa.String(length=25), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        _money("monthly_payment"),
        _money("total_amount_due"),
        *[_money(month) for month in MONTHS],
        _money("total_collected"),
        _money("balance_due"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("phone1", "year", name="uq_member_payments_phone_year"),
    )
    op.create_index("ix_member_payments_member_id", "member_payments", ["member_id"])


def downgrade() -> None:
    op.drop_index("ix_member_payments_member_id", table_name="member_payments")
    op.drop_table("member_payments")
    op.drop_index("ix_memo_matches_member_id", table_name="memo_matches")
    op.drop_table("memo_matches")
    op.drop_index("ix_ledger_entries_gl_code", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_entry_date", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_transaction_id", table_name="ledger_entries")
    op.drop_table("ledger_entries")
    op.drop_index("ix_transactions_payment_type", table_name="transactions")
    op.drop_index("ix_transactions_payment_date", table_name="transactions")
    op.drop_index("ix_transactions_member_id", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_bank_transactions_member_id", table_name="bank_transactions")
    op.drop_index("ix_bank_transactions_status", table_name="bank_transactions")
    op.drop_index("ix_bank_transactions_date", table_name="bank_transactions")
    op.drop_index("ix_bank_transactions_transaction_hash", table_name="bank_transactions")
    op.drop_table("bank_transactions")
    bind = op.get_bind()
    for enum in (LEDGER_SOURCE, LEDGER_TYPE, TRANSACTION_STATUS, PAYMENT_METHOD, PAYMENT_TYPE, BANK_STATUS):
        enum.drop(bind, checkfirst=True)
