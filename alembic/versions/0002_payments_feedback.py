from alembic import op
import sqlalchemy as sa

revision = "0002_payments_feedback"
down_revision = "0001_listings"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "listing_payments",
        sa.Column("order_id", sa.String(length=64), primary_key=True),
        sa.Column("listing_id", sa.String(), nullable=False),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("plan", sa.String(length=4), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("applied_at", sa.BigInteger(), nullable=False),
    )
    op.create_index("ix_listing_payments_listing_id", "listing_payments", ["listing_id"])

    op.create_table(
        "listing_feedback",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("listing_id", sa.String(), sa.ForeignKey("listings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=True),
        sa.Column("author", sa.String(length=120), nullable=True),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_feedback_rating"),
    )
    op.create_index("ix_listing_feedback_listing_created", "listing_feedback", ["listing_id", "created_at"])


def downgrade():
    op.drop_index("ix_listing_feedback_listing_created", table_name="listing_feedback")
    op.drop_table("listing_feedback")
    op.drop_index("ix_listing_payments_listing_id", table_name="listing_payments")
    op.drop_table("listing_payments")
