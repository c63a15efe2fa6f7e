from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_listings"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "listings",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending_payment"),

        sa.Column("plan", sa.String(length=4), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("price_paid", sa.Numeric(10, 2), nullable=False, server_default="0"),

        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("expires_at", sa.BigInteger(), nullable=True),

        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("last_extend_plan", sa.String(length=4), nullable=True),
        sa.Column("last_order_id", sa.String(length=64), nullable=True),

        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),

        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),

        sa.CheckConstraint("status IN ('pending_payment', 'verified', 'expired')", name="ck_listing_status"),
    )

    op.create_index("ix_listings_owner_id", "listings", ["owner_id"])
    op.create_index("ix_listings_status_expires_at", "listings", ["status", "expires_at"])


def downgrade():
    op.drop_index("ix_listings_status_expires_at", table_name="listings")
    op.drop_index("ix_listings_owner_id", table_name="listings")
    op.drop_table("listings")
