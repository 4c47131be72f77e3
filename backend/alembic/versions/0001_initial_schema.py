"""initial schema: accounts, fleet, trips, blog, platform tables

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

NOW = sa.text("CURRENT_TIMESTAMP")


def _timestamps(updated: bool = True):
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False))
    return cols


def upgrade():
    # --- Accounts ---
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("avatar", sa.String(length=512), nullable=True),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("is_verified", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "user_roles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("assigned_by", sa.Integer(), nullable=True),
        sa.UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
    )
    op.create_index("ix_user_roles_id", "user_roles", ["id"])
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])

    op.create_table(
        "client_profiles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
        ),
        sa.Column("preferred_vehicle", sa.String(length=32), nullable=True),
        sa.Column("loyalty_points", sa.Integer(), server_default="0", nullable=False),
        sa.Column("membership_tier", sa.String(length=32), server_default=sa.text("'BASIC'"), nullable=False),
        sa.Column("emergency_contact", sa.JSON(), nullable=True),
        sa.Column("special_requests", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_client_profiles_id", "client_profiles", ["id"])

    op.create_table(
        "driver_profiles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
        ),
        sa.Column("license_number", sa.String(length=64), nullable=False, unique=True),
        sa.Column("license_expiry", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_approved", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("rating", sa.Float(), server_default="0", nullable=False),
        sa.Column("total_trips", sa.Integer(), server_default="0", nullable=False),
        sa.Column("languages", sa.JSON(), nullable=False),
        sa.Column("is_available", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("current_location", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_driver_profiles_id", "driver_profiles", ["id"])

    op.create_table(
        "blog_editor_profiles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
        ),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("social_links", sa.JSON(), nullable=True),
        sa.Column("is_approved", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("permissions", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_blog_editor_profiles_id", "blog_editor_profiles", ["id"])

    # --- Fleet ---
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "driver_id", sa.Integer(), sa.ForeignKey("driver_profiles.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("make", sa.String(length=64), nullable=False),
        sa.Column("model", sa.String(length=64), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("color", sa.String(length=32), nullable=False),
        sa.Column("plate_number", sa.String(length=32), nullable=False, unique=True),
        sa.Column("vin", sa.String(length=64), nullable=True, unique=True),
        sa.Column("vehicle_type", sa.String(length=32), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("fuel_type", sa.String(length=32), nullable=True),
        sa.Column("insurance_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column("inspection_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column("photos", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_vehicles_id", "vehicles", ["id"])
    op.create_index("ix_vehicles_driver_id", "vehicles", ["driver_id"])
    op.create_index("ix_vehicles_vehicle_type", "vehicles", ["vehicle_type"])

    for table, prefix in (("vehicle_permits", "permit"), ("vehicle_licenses", "license")):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column(
                "vehicle_id", sa.Integer(), sa.ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column(f"{prefix}_type", sa.String(length=64), nullable=False),
            sa.Column(f"{prefix}_number", sa.String(length=64), nullable=False),
            sa.Column("issuing_authority", sa.String(length=255), nullable=False),
            sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
            sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=False),
            sa.Column("file_url", sa.String(length=1024), nullable=True),
            sa.Column("file_name", sa.String(length=255), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=32), server_default=sa.text("'PENDING'"), nullable=False),
            *_timestamps(updated=False),
            sa.UniqueConstraint(
                "vehicle_id", f"{prefix}_type", f"{prefix}_number", name=f"uq_{table}_number"
            ),
        )
        op.create_index(f"ix_{table}_id", table, ["id"])
        op.create_index(f"ix_{table}_vehicle_id", table, ["vehicle_id"])
        op.create_index(f"ix_{table}_expiry_date", table, ["expiry_date"])

    op.create_table(
        "driver_verification_docs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "driver_id", sa.Integer(), sa.ForeignKey("driver_profiles.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("document_type", sa.String(length=64), nullable=False),
        sa.Column("file_url", sa.String(length=1024), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("mime_type", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=32), server_default=sa.text("'PENDING'"), nullable=False),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_driver_verification_docs_id", "driver_verification_docs", ["id"])
    op.create_index("ix_driver_verification_docs_driver_id", "driver_verification_docs", ["driver_id"])
    op.create_index(
        "ix_verification_docs_driver_type", "driver_verification_docs", ["driver_id", "document_type"]
    )

    # --- Trips & payments ---
    op.create_table(
        "trips",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "driver_id", sa.Integer(), sa.ForeignKey("driver_profiles.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("vehicle_id", sa.Integer(), sa.ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("pickup_address", sa.String(length=512), nullable=False),
        sa.Column("pickup_lat", sa.Float(), nullable=True),
        sa.Column("pickup_lng", sa.Float(), nullable=True),
        sa.Column("pickup_region", sa.String(length=8), server_default=sa.text("'HK'"), nullable=False),
        sa.Column("dropoff_address", sa.String(length=512), nullable=False),
        sa.Column("dropoff_lat", sa.Float(), nullable=True),
        sa.Column("dropoff_lng", sa.Float(), nullable=True),
        sa.Column("dropoff_region", sa.String(length=8), server_default=sa.text("'HK'"), nullable=False),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("estimated_duration", sa.Integer(), nullable=True),
        sa.Column("distance_km", sa.Float(), nullable=True),
        sa.Column("vehicle_type", sa.String(length=32), nullable=False),
        sa.Column("base_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("surcharges", sa.JSON(), nullable=True),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(length=8), server_default=sa.text("'HKD'"), nullable=False),
        sa.Column("status", sa.String(length=32), server_default=sa.text("'PENDING'"), nullable=False),
        sa.Column("payment_status", sa.String(length=32), server_default=sa.text("'PENDING'"), nullable=False),
        sa.Column("urgency", sa.String(length=16), server_default=sa.text("'MEDIUM'"), nullable=False),
        sa.Column("passenger_count", sa.Integer(), server_default="1", nullable=False),
        sa.Column("luggage_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("special_requests", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("driver_notes", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_trips_id", "trips", ["id"])
    op.create_index("ix_trips_client_id", "trips", ["client_id"])
    op.create_index("ix_trips_driver_id", "trips", ["driver_id"])
    op.create_index("ix_trips_scheduled_date", "trips", ["scheduled_date"])
    op.create_index("ix_trips_status", "trips", ["status"])
    op.create_index("ix_trips_completed_at", "trips", ["completed_at"])
    op.create_index("ix_trips_driver_status", "trips", ["driver_id", "status"])
    op.create_index("ix_trips_client_scheduled", "trips", ["client_id", "scheduled_date"])

    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("trip_id", sa.Integer(), sa.ForeignKey("trips.id", ondelete="CASCADE"), nullable=False),
        sa.Column("reviewer_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint("trip_id", "reviewer_id", name="uq_reviews_trip_reviewer"),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )
    op.create_index("ix_reviews_id", "reviews", ["id"])
    op.create_index("ix_reviews_trip_id", "reviews", ["trip_id"])
    op.create_index("ix_reviews_reviewer_id", "reviews", ["reviewer_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("trip_id", sa.Integer(), sa.ForeignKey("trips.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(length=8), server_default=sa.text("'HKD'"), nullable=False),
        sa.Column("method", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), server_default=sa.text("'PENDING'"), nullable=False),
        sa.Column("transaction_id", sa.String(length=128), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("refund_reason", sa.Text(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_trip_id", "payments", ["trip_id"])

    op.create_table(
        "payment_methods",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "client_id", sa.Integer(), sa.ForeignKey("client_profiles.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("last4_digits", sa.String(length=4), nullable=True),
        sa.Column("card_brand", sa.String(length=32), nullable=True),
        sa.Column("expiry_month", sa.Integer(), nullable=True),
        sa.Column("expiry_year", sa.Integer(), nullable=True),
        sa.Column("cardholder_name", sa.String(length=255), nullable=True),
        sa.Column("wallet_type", sa.String(length=32), nullable=True),
        sa.Column("billing_address", sa.JSON(), nullable=True),
        sa.Column("is_default", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index("ix_payment_methods_id", "payment_methods", ["id"])
    op.create_index("ix_payment_methods_client_id", "payment_methods", ["client_id"])

    # --- Blog ---
    op.create_table(
        "blog_categories",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("slug", sa.String(length=100), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_blog_categories_id", "blog_categories", ["id"])

    op.create_table(
        "blog_tags",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("slug", sa.String(length=100), nullable=False, unique=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_blog_tags_id", "blog_tags", ["id"])

    op.create_table(
        "blog_posts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("excerpt", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("featured_image", sa.String(length=1024), nullable=True),
        sa.Column("meta_title", sa.String(length=255), nullable=True),
        sa.Column("meta_description", sa.String(length=512), nullable=True),
        sa.Column("keywords", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=32), server_default=sa.text("'DRAFT'"), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("view_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("share_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_blog_posts_id", "blog_posts", ["id"])
    op.create_index("ix_blog_posts_slug", "blog_posts", ["slug"], unique=True)
    op.create_index("ix_blog_posts_status", "blog_posts", ["status"])
    op.create_index("ix_blog_posts_published_at", "blog_posts", ["published_at"])
    op.create_index("ix_blog_posts_author_id", "blog_posts", ["author_id"])

    op.create_table(
        "blog_post_categories",
        sa.Column(
            "post_id", sa.Integer(), sa.ForeignKey("blog_posts.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column(
            "category_id", sa.Integer(), sa.ForeignKey("blog_categories.id", ondelete="CASCADE"), primary_key=True
        ),
    )
    op.create_table(
        "blog_post_tags",
        sa.Column(
            "post_id", sa.Integer(), sa.ForeignKey("blog_posts.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("tag_id", sa.Integer(), sa.ForeignKey("blog_tags.id", ondelete="CASCADE"), primary_key=True),
    )

    # --- Platform ---
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), server_default=sa.false(), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "is_read"])

    op.create_table(
        "system_settings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False, unique=True),
        sa.Column("value", sa.JSON(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    )
    op.create_index("ix_system_settings_id", "system_settings", ["id"])

    op.create_table(
        "password_reset_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("request_ip", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_password_reset_tokens_id", "password_reset_tokens", ["id"])
    op.create_index("ix_password_reset_tokens_user_id", "password_reset_tokens", ["user_id"])
    op.create_index("ix_password_reset_tokens_email", "password_reset_tokens", ["email"])
    op.create_index("ix_password_reset_tokens_token_hash", "password_reset_tokens", ["token_hash"], unique=True)


def downgrade():
    for table in (
        "password_reset_tokens",
        "system_settings",
        "notifications",
        "blog_post_tags",
        "blog_post_categories",
        "blog_posts",
        "blog_tags",
        "blog_categories",
        "payment_methods",
        "payments",
        "reviews",
        "trips",
        "driver_verification_docs",
        "vehicle_licenses",
        "vehicle_permits",
        "vehicles",
        "blog_editor_profiles",
        "driver_profiles",
        "client_profiles",
        "user_roles",
        "users",
    ):
        op.drop_table(table)
