"""initial payment, proposal and ledger schema

Revision ID: 20261001_initial_schema
Revises:
Create Date: 2026-10-01 09:12:04.118532
"""
from alembic import op
import sqlalchemy as sa

revision = "20261001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _enum(*values: str, length: int = 16) -> sa.Enum:
    return sa.Enum(*values, native_enum=False, length=length)


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_profiles_user_id", "profiles", ["user_id"], unique=True)

    op.create_table(
        "payment_gateway_config",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("mercadopago_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("mercadopago_pix_discount_percent", sa.Numeric(5, 2), nullable=True),
        sa.Column("mercadopago_card_discount_percent", sa.Numeric(5, 2), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "mercadopago_pix_discount_percent IS NULL OR "
            "(mercadopago_pix_discount_percent >= 0 AND mercadopago_pix_discount_percent <= 100)",
            name="ck_gateway_pix_discount_range",
        ),
        sa.CheckConstraint(
            "mercadopago_card_discount_percent IS NULL OR "
            "(mercadopago_card_discount_percent >= 0 AND mercadopago_card_discount_percent <= 100)",
            name="ck_gateway_card_discount_range",
        ),
    )

    op.create_table(
        "proposals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("freelancer_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("accepted_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("freelancer_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("platform_commission", sa.Numeric(18, 2), nullable=True),
        sa.Column("processor_fee", sa.Numeric(18, 2), nullable=True),
        sa.Column(
            "payment_status",
            _enum("awaiting_payment", "pending", "paid_escrow", length=32),
            nullable=False,
            server_default="awaiting_payment",
        ),
        sa.Column("work_status", sa.String(length=32), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_proposals_freelancer_id", "proposals", ["freelancer_id"])
    op.create_index("ix_proposals_client_id", "proposals", ["client_id"])
    op.create_index("ix_proposals_payment_status", "proposals", ["payment_status"])

    op.create_table(
        "proposal_status_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("proposal_id", sa.Integer(), sa.ForeignKey("proposals.id"), nullable=False),
        sa.Column("status_type", sa.String(length=50), nullable=False),
        sa.Column("changed_by", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_proposal_status_history_proposal_id", "proposal_status_history", ["proposal_id"])

    op.create_table(
        "proposal_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("proposal_id", sa.Integer(), sa.ForeignKey("proposals.id"), nullable=False),
        sa.Column("processor_payment_id", sa.String(length=64), nullable=False),
        sa.Column("payer_profile_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=True),
        sa.Column("payment_method", _enum("pix", "card"), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("platform_commission", sa.Numeric(18, 2), nullable=False),
        sa.Column("processor_fee", sa.Numeric(18, 2), nullable=False),
        sa.Column("payee_net_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("status", _enum("pending", "paid", "failed"), nullable=False, server_default="pending"),
        sa.Column("payment_data", sa.JSON(), nullable=False),
        sa.Column("credited_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "proposal_id", "processor_payment_id", name="uq_proposal_payments_proposal_processor"
        ),
        sa.CheckConstraint("amount >= 0", name="ck_proposal_payment_amount_non_negative"),
        sa.CheckConstraint("payee_net_amount >= 0", name="ck_proposal_payment_net_non_negative"),
    )
    op.create_index("ix_proposal_payments_proposal_id", "proposal_payments", ["proposal_id"])
    op.create_index("ix_proposal_payments_status", "proposal_payments", ["status"])
    op.create_index(
        "ix_proposal_payments_processor_payment_id", "proposal_payments", ["processor_payment_id"]
    )

    op.create_table(
        "woorkoins_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("profile_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("processor_payment_id", sa.String(length=64), nullable=False),
        sa.Column("payment_method", _enum("pix", "card"), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(18, 2), nullable=False),
        sa.Column("status", _enum("pending", "paid", "failed"), nullable=False, server_default="pending"),
        sa.Column("payment_data", sa.JSON(), nullable=False),
        sa.Column("credited_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("processor_payment_id", name="uq_woorkoins_payments_processor_payment_id"),
        sa.CheckConstraint("amount > 0", name="ck_woorkoins_payment_amount_positive"),
        sa.CheckConstraint("price >= 0", name="ck_woorkoins_payment_price_non_negative"),
    )
    op.create_index("ix_woorkoins_payments_profile_id", "woorkoins_payments", ["profile_id"])
    op.create_index("ix_woorkoins_payments_status", "woorkoins_payments", ["status"])

    op.create_table(
        "freelancer_wallets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("profile_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=False, unique=True),
        sa.Column("pending_balance", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("available_balance", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("total_earned", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("total_withdrawn", sa.Numeric(18, 2), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("pending_balance >= 0", name="ck_wallet_pending_non_negative"),
        sa.CheckConstraint("available_balance >= 0", name="ck_wallet_available_non_negative"),
        sa.CheckConstraint("total_earned >= 0", name="ck_wallet_earned_non_negative"),
        sa.CheckConstraint("total_withdrawn >= 0", name="ck_wallet_withdrawn_non_negative"),
    )

    op.create_table(
        "woorkoins_balances",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("profile_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=False, unique=True),
        sa.Column("balance", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("balance >= 0", name="ck_woorkoins_balance_non_negative"),
    )

    op.create_table(
        "woorkoins_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("profile_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("processor_payment_id", sa.String(length=64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_woorkoins_transactions_profile_id", "woorkoins_transactions", ["profile_id"])
    op.create_index(
        "ix_woorkoins_transactions_processor_payment_id",
        "woorkoins_transactions",
        ["processor_payment_id"],
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor", sa.String(length=100), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("data_json", sa.JSON(), nullable=False),
        sa.Column("at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_woorkoins_transactions_processor_payment_id", table_name="woorkoins_transactions")
    op.drop_index("ix_woorkoins_transactions_profile_id", table_name="woorkoins_transactions")
    op.drop_table("woorkoins_transactions")
    op.drop_table("woorkoins_balances")
    op.drop_table("freelancer_wallets")
    op.drop_index("ix_woorkoins_payments_status", table_name="woorkoins_payments")
    op.drop_index("ix_woorkoins_payments_profile_id", table_name="woorkoins_payments")
    op.drop_table("woorkoins_payments")
    op.drop_index("ix_proposal_payments_processor_payment_id", table_name="proposal_payments")
    op.drop_index("ix_proposal_payments_status", table_name="proposal_payments")
    op.drop_index("ix_proposal_payments_proposal_id", table_name="proposal_payments")
    op.drop_table("proposal_payments")
    op.drop_index("ix_proposal_status_history_proposal_id", table_name="proposal_status_history")
    op.drop_table("proposal_status_history")
    op.drop_index("ix_proposals_payment_status", table_name="proposals")
    op.drop_index("ix_proposals_client_id", table_name="proposals")
    op.drop_index("ix_proposals_freelancer_id", table_name="proposals")
    op.drop_table("proposals")
    op.drop_table("payment_gateway_config")
    op.drop_index("ix_profiles_user_id", table_name="profiles")
    op.drop_table("profiles")
