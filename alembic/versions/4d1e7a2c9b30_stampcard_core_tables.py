from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "4d1e7a2c9b30"
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(bind, table_name: str) -> bool:
    insp = sa.inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    bind = op.get_bind()

    if not _table_exists(bind, "brands"):
        op.create_table(
            "brands",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("phone", sa.String(length=30), nullable=False),
            sa.Column("address", sa.String(length=255), nullable=False),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=True),
        )

    if not _table_exists(bind, "businesses"):
        op.create_table(
            "businesses",
            sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
            sa.Column("brand_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("brands.id"), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("phone", sa.String(length=30), nullable=False),
            sa.Column("address", sa.String(length=255), nullable=False),
            sa.Column("total_sms", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("total_email", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("total_push", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("available_sms", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("available_email", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("available_push", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=True),
        )

    if not _table_exists(bind, "prizes"):
        op.create_table(
            "prizes",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("points_required", sa.Integer(), nullable=False),
            sa.Column("is_promotional", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("business_id", sa.String(length=64), sa.ForeignKey("businesses.id"), nullable=True),
            sa.Column("brand_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("brands.id"), nullable=True),
            sa.Column("created_at", sa.TIMESTAMP(), nullable=True),
            sa.CheckConstraint("points_required > 0", name="ck_prizes_points_required_positive"),
            sa.CheckConstraint("business_id IS NULL OR brand_id IS NULL", name="ck_prizes_single_scope"),
        )
        op.create_index("ix_prizes_business_id", "prizes", ["business_id"])

    if not _table_exists(bind, "stamps"):
        op.create_table(
            "stamps",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("user_id", sa.String(length=100), nullable=False),
            sa.Column("business_id", sa.String(length=64), sa.ForeignKey("businesses.id"), nullable=False),
            sa.Column("is_redeemed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.TIMESTAMP(), nullable=True),
        )
        op.create_index("ix_stamps_user_business", "stamps", ["user_id", "business_id"])

    if not _table_exists(bind, "coupons"):
        op.create_table(
            "coupons",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("user_id", sa.String(length=100), nullable=False),
            sa.Column("business_id", sa.String(length=64), sa.ForeignKey("businesses.id"), nullable=False),
            sa.Column("prize_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("prizes.id"), nullable=False),
            sa.Column("code", sa.String(length=100), nullable=False),
            sa.Column("is_redeemed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.TIMESTAMP(), nullable=True),
            sa.Column("expired_at", sa.TIMESTAMP(), nullable=True),
            sa.Column("redeemed_at", sa.TIMESTAMP(), nullable=True),
            sa.UniqueConstraint("business_id", "code", name="uq_coupons_business_id_code"),
        )
        op.create_index("ix_coupons_user_business", "coupons", ["user_id", "business_id"])

    if not _table_exists(bind, "stamp_cards"):
        op.create_table(
            "stamp_cards",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("user_id", sa.String(length=100), nullable=False),
            sa.Column("business_id", sa.String(length=64), sa.ForeignKey("businesses.id"), nullable=False),
            sa.Column("created_at", sa.TIMESTAMP(), nullable=True),
            sa.Column("last_stamp_at", sa.TIMESTAMP(), nullable=True),
            sa.UniqueConstraint("user_id", "business_id", name="uq_stamp_cards_user_id_business_id"),
        )


def downgrade() -> None:
    bind = op.get_bind()

    for table in ("stamp_cards", "coupons", "stamps", "prizes", "businesses", "brands"):
        if _table_exists(bind, table):
            op.drop_table(table)
