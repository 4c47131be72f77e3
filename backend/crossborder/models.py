# backend/crossborder/models.py
from enum import Enum

import sqlalchemy as sa
from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    ForeignKey,
    Text,
    Index,
    DateTime,
    Numeric,
    Boolean,
    JSON,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text

from crossborder.db.base import Base

# Cross-DB timestamp default (SQLite + Postgres)
DB_NOW = text("CURRENT_TIMESTAMP")


# --- Enumerations (stored as plain strings) ---

class Role(str, Enum):
    CLIENT = "CLIENT"
    DRIVER = "DRIVER"
    BLOG_EDITOR = "BLOG_EDITOR"
    ADMIN = "ADMIN"


class VehicleType(str, Enum):
    BUSINESS = "BUSINESS"
    EXECUTIVE = "EXECUTIVE"
    LUXURY = "LUXURY"
    SUV = "SUV"
    VAN = "VAN"


class TripStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIAL_REFUND = "PARTIAL_REFUND"


class PaymentMethodKind(str, Enum):
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    WECHAT_PAY = "WECHAT_PAY"
    ALIPAY = "ALIPAY"
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"


class SavedMethodType(str, Enum):
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    DIGITAL_WALLET = "DIGITAL_WALLET"
    BANK_ACCOUNT = "BANK_ACCOUNT"


class PostStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    SCHEDULED = "SCHEDULED"
    ARCHIVED = "ARCHIVED"


class VerificationDocType(str, Enum):
    DRIVING_LICENSE = "DRIVING_LICENSE"
    VEHICLE_REGISTRATION = "VEHICLE_REGISTRATION"
    INSURANCE_HK = "INSURANCE_HK"
    INSURANCE_CHINA = "INSURANCE_CHINA"
    PASSPORT = "PASSPORT"
    ID_CARD = "ID_CARD"
    BUSINESS_LICENSE = "BUSINESS_LICENSE"


class DocumentStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class NotificationType(str, Enum):
    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    DRIVER_ASSIGNED = "DRIVER_ASSIGNED"
    TRIP_ACCEPTED = "TRIP_ACCEPTED"
    TRIP_STARTED = "TRIP_STARTED"
    TRIP_COMPLETED = "TRIP_COMPLETED"
    REVIEW_REQUEST = "REVIEW_REQUEST"
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
    DOCUMENT_APPROVED = "DOCUMENT_APPROVED"
    DOCUMENT_REJECTED = "DOCUMENT_REJECTED"
    PERMIT_EXPIRING = "PERMIT_EXPIRING"
    SYSTEM_UPDATE = "SYSTEM_UPDATE"


class Urgency(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


# --- Accounts ---

class User(Base):
    """
    A person who can sign in. What they may do is decided by their active
    UserRole rows, not by a column on this table.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    phone = Column(String(32), nullable=True)
    avatar = Column(String(512), nullable=True)
    hashed_password = Column(String(255), nullable=False)

    is_verified = Column(Boolean, nullable=False, default=False, server_default=sa.false())
    is_active = Column(Boolean, nullable=False, default=True, server_default=sa.true())

    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=DB_NOW, onupdate=DB_NOW, nullable=False)

    roles = relationship("UserRole", back_populates="user", cascade="all, delete-orphan")
    client_profile = relationship(
        "ClientProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    driver_profile = relationship(
        "DriverProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    editor_profile = relationship(
        "BlogEditorProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")
    trips = relationship("Trip", back_populates="client", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="reviewer", cascade="all, delete-orphan")
    reset_tokens = relationship("PasswordResetToken", back_populates="user", cascade="all, delete-orphan")
    posts = relationship("BlogPost", back_populates="author")

    @property
    def active_roles(self) -> list[str]:
        return [r.role for r in self.roles if r.is_active]


class UserRole(Base):
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(32), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default=sa.true())
    assigned_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)
    assigned_by = Column(Integer, nullable=True)

    user = relationship("User", back_populates="roles")

    __table_args__ = (
        sa.UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
    )


class ClientProfile(Base):
    __tablename__ = "client_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    preferred_vehicle = Column(String(32), nullable=True)
    loyalty_points = Column(Integer, nullable=False, default=0, server_default="0")
    membership_tier = Column(String(32), nullable=False, default="BASIC", server_default=text("'BASIC'"))
    emergency_contact = Column(JSON, nullable=True)
    special_requests = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=DB_NOW, onupdate=DB_NOW, nullable=False)

    user = relationship("User", back_populates="client_profile")
    payment_methods = relationship("PaymentMethod", back_populates="client", cascade="all, delete-orphan")


class DriverProfile(Base):
    __tablename__ = "driver_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    license_number = Column(String(64), nullable=False, unique=True)
    license_expiry = Column(DateTime(timezone=True), nullable=False)
    is_approved = Column(Boolean, nullable=False, default=False, server_default=sa.false())
    rating = Column(Float, nullable=False, default=0.0, server_default="0")
    total_trips = Column(Integer, nullable=False, default=0, server_default="0")
    languages = Column(JSON, nullable=False, default=list)
    is_available = Column(Boolean, nullable=False, default=True, server_default=sa.true())
    current_location = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=DB_NOW, onupdate=DB_NOW, nullable=False)

    user = relationship("User", back_populates="driver_profile")
    vehicles = relationship("Vehicle", back_populates="driver", cascade="all, delete-orphan")
    documents = relationship("VerificationDocument", back_populates="driver", cascade="all, delete-orphan")
    trips = relationship("Trip", back_populates="driver")


class BlogEditorProfile(Base):
    __tablename__ = "blog_editor_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    bio = Column(Text, nullable=True)
    social_links = Column(JSON, nullable=True)
    is_approved = Column(Boolean, nullable=False, default=False, server_default=sa.false())
    permissions = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=DB_NOW, onupdate=DB_NOW, nullable=False)

    user = relationship("User", back_populates="editor_profile")


# --- Fleet ---

class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    driver_id = Column(Integer, ForeignKey("driver_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    make = Column(String(64), nullable=False)
    model = Column(String(64), nullable=False)
    year = Column(Integer, nullable=False)
    color = Column(String(32), nullable=False)
    plate_number = Column(String(32), nullable=False, unique=True)
    vin = Column(String(64), nullable=True, unique=True)
    vehicle_type = Column(String(32), nullable=False, index=True)
    capacity = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default=sa.true())
    features = Column(JSON, nullable=False, default=list)
    fuel_type = Column(String(32), nullable=True)
    insurance_expiry = Column(DateTime(timezone=True), nullable=True)
    inspection_expiry = Column(DateTime(timezone=True), nullable=True)
    photos = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=DB_NOW, onupdate=DB_NOW, nullable=False)

    driver = relationship("DriverProfile", back_populates="vehicles")
    permits = relationship(
        "Permit", back_populates="vehicle", cascade="all, delete-orphan", order_by="Permit.expiry_date"
    )
    licenses = relationship(
        "License", back_populates="vehicle", cascade="all, delete-orphan", order_by="License.expiry_date"
    )
    trips = relationship("Trip", back_populates="vehicle")


class Permit(Base):
    __tablename__ = "vehicle_permits"

    id = Column(Integer, primary_key=True, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False, index=True)
    permit_type = Column(String(64), nullable=False)
    permit_number = Column(String(64), nullable=False)
    issuing_authority = Column(String(255), nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=False, index=True)
    file_url = Column(String(1024), nullable=True)
    file_name = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default="PENDING", server_default=text("'PENDING'"))

    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    vehicle = relationship("Vehicle", back_populates="permits")

    __table_args__ = (
        sa.UniqueConstraint("vehicle_id", "permit_type", "permit_number", name="uq_vehicle_permits_number"),
    )


class License(Base):
    __tablename__ = "vehicle_licenses"

    id = Column(Integer, primary_key=True, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False, index=True)
    license_type = Column(String(64), nullable=False)
    license_number = Column(String(64), nullable=False)
    issuing_authority = Column(String(255), nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=False, index=True)
    file_url = Column(String(1024), nullable=True)
    file_name = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default="PENDING", server_default=text("'PENDING'"))

    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    vehicle = relationship("Vehicle", back_populates="licenses")

    __table_args__ = (
        sa.UniqueConstraint("vehicle_id", "license_type", "license_number", name="uq_vehicle_licenses_number"),
    )


class VerificationDocument(Base):
    __tablename__ = "driver_verification_docs"

    id = Column(Integer, primary_key=True, index=True)
    driver_id = Column(Integer, ForeignKey("driver_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    document_type = Column(String(64), nullable=False)
    file_url = Column(String(1024), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String(64), nullable=False)
    status = Column(String(32), nullable=False, default="PENDING", server_default=text("'PENDING'"))
    admin_notes = Column(Text, nullable=True)
    uploaded_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    expiry_date = Column(DateTime(timezone=True), nullable=True)

    driver = relationship("DriverProfile", back_populates="documents")

    __table_args__ = (
        Index("ix_verification_docs_driver_type", "driver_id", "document_type"),
    )


# --- Trips & payments ---

class Trip(Base):
    """
    One booked ride. Created by the booking flow, then driven through
    PENDING/CONFIRMED -> ACCEPTED -> IN_PROGRESS -> COMPLETED by the driver.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey("driver_profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True)

    pickup_address = Column(String(512), nullable=False)
    pickup_lat = Column(Float, nullable=True)
    pickup_lng = Column(Float, nullable=True)
    pickup_region = Column(String(8), nullable=False, default="HK", server_default=text("'HK'"))
    dropoff_address = Column(String(512), nullable=False)
    dropoff_lat = Column(Float, nullable=True)
    dropoff_lng = Column(Float, nullable=True)
    dropoff_region = Column(String(8), nullable=False, default="HK", server_default=text("'HK'"))

    scheduled_date = Column(DateTime(timezone=True), nullable=False, index=True)
    estimated_duration = Column(Integer, nullable=True)  # minutes
    distance_km = Column(Float, nullable=True)
    vehicle_type = Column(String(32), nullable=False)

    base_price = Column(Numeric(10, 2), nullable=False, default=0)
    surcharges = Column(JSON, nullable=True)
    total_price = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(8), nullable=False, default="HKD", server_default=text("'HKD'"))

    status = Column(String(32), nullable=False, default="PENDING", server_default=text("'PENDING'"), index=True)
    payment_status = Column(String(32), nullable=False, default="PENDING", server_default=text("'PENDING'"))
    urgency = Column(String(16), nullable=False, default="MEDIUM", server_default=text("'MEDIUM'"))

    passenger_count = Column(Integer, nullable=False, default=1, server_default="1")
    luggage_count = Column(Integer, nullable=False, default=0, server_default="0")
    special_requests = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    driver_notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    accepted_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=DB_NOW, onupdate=DB_NOW, nullable=False)

    client = relationship("User", back_populates="trips")
    driver = relationship("DriverProfile", back_populates="trips")
    vehicle = relationship("Vehicle", back_populates="trips")
    payments = relationship("Payment", back_populates="trip", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="trip", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_trips_driver_status", "driver_id", "status"),
        Index("ix_trips_client_scheduled", "client_id", "scheduled_date"),
    )


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    title = Column(String(255), nullable=True)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    trip = relationship("Trip", back_populates="reviews")
    reviewer = relationship("User", back_populates="reviews")

    __table_args__ = (
        sa.UniqueConstraint("trip_id", "reviewer_id", name="uq_reviews_trip_reviewer"),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="HKD", server_default=text("'HKD'"))
    method = Column(String(32), nullable=False)
    status = Column(String(32), nullable=False, default="PENDING", server_default=text("'PENDING'"))
    transaction_id = Column(String(128), nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=True)
    refund_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    trip = relationship("Trip", back_populates="payments")


class PaymentMethod(Base):
    """Saved client payment method. Only non-sensitive card fields are stored."""
    __tablename__ = "payment_methods"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("client_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(32), nullable=False)
    last4_digits = Column(String(4), nullable=True)
    card_brand = Column(String(32), nullable=True)
    expiry_month = Column(Integer, nullable=True)
    expiry_year = Column(Integer, nullable=True)
    cardholder_name = Column(String(255), nullable=True)
    wallet_type = Column(String(32), nullable=True)
    billing_address = Column(JSON, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False, server_default=sa.false())
    is_active = Column(Boolean, nullable=False, default=True, server_default=sa.true())
    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    client = relationship("ClientProfile", back_populates="payment_methods")


# --- Blog ---

blog_post_categories = sa.Table(
    "blog_post_categories",
    Base.metadata,
    Column("post_id", Integer, ForeignKey("blog_posts.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, ForeignKey("blog_categories.id", ondelete="CASCADE"), primary_key=True),
)

blog_post_tags = sa.Table(
    "blog_post_tags",
    Base.metadata,
    Column("post_id", Integer, ForeignKey("blog_posts.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("blog_tags.id", ondelete="CASCADE"), primary_key=True),
)


class BlogCategory(Base):
    __tablename__ = "blog_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True)
    slug = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    posts = relationship("BlogPost", secondary=blog_post_categories, back_populates="categories")


class BlogTag(Base):
    __tablename__ = "blog_tags"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True)
    slug = Column(String(100), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    posts = relationship("BlogPost", secondary=blog_post_tags, back_populates="tags")


class BlogPost(Base):
    __tablename__ = "blog_posts"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(120), nullable=False, unique=True, index=True)
    title = Column(String(255), nullable=False)
    excerpt = Column(Text, nullable=True)
    content = Column(Text, nullable=False)
    featured_image = Column(String(1024), nullable=True)
    meta_title = Column(String(255), nullable=True)
    meta_description = Column(String(512), nullable=True)
    keywords = Column(JSON, nullable=False, default=list)
    status = Column(String(32), nullable=False, default="DRAFT", server_default=text("'DRAFT'"), index=True)
    published_at = Column(DateTime(timezone=True), nullable=True, index=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    view_count = Column(Integer, nullable=False, default=0, server_default="0")
    share_count = Column(Integer, nullable=False, default=0, server_default="0")
    author_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=DB_NOW, onupdate=DB_NOW, nullable=False)

    author = relationship("User", back_populates="posts")
    categories = relationship("BlogCategory", secondary=blog_post_categories, back_populates="posts")
    tags = relationship("BlogTag", secondary=blog_post_tags, back_populates="posts")


# --- Platform ---

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(64), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False, server_default=sa.false())
    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    user = relationship("User", back_populates="notifications")

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
    )


class SystemSetting(Base):
    """One admin settings section (general, security, ...) stored as JSON."""
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(64), nullable=False, unique=True)
    value = Column(JSON, nullable=False)
    description = Column(String(255), nullable=True)
    updated_by = Column(Integer, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=DB_NOW, onupdate=DB_NOW, nullable=False)


class PasswordResetToken(Base):
    """
    Single-use password reset token. Only the sha256 hash is stored.
    """
    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    request_ip = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    user = relationship("User", back_populates="reset_tokens")
