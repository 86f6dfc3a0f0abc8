"""Initial schema: users, service requests, applications, update log and chat history"""

revision = "20251019_000000"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa

REQUEST_KIND = sa.Enum("blood", "elder_support", "complaint", name="request_kind")
REQUEST_STATUS = sa.Enum(
    "open",
    "pending",
    "assigned",
    "accepted",
    "in_progress",
    "resolved",
    "completed",
    "closed",
    "cancelled",
    name="request_status",
)
REQUEST_PRIORITY = sa.Enum("low", "medium", "high", "urgent", name="request_priority")
BLOOD_TYPE = sa.Enum("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-", name="blood_type")
COMPLAINT_CATEGORY = sa.Enum(
    "infrastructure",
    "sanitation",
    "water_supply",
    "electricity",
    "road_maintenance",
    "waste_management",
    "public_safety",
    "healthcare",
    "education",
    "transportation",
    "other",
    name="complaint_category",
)
APPLICATION_STATUS = sa.Enum("pending", "accepted", "rejected", name="application_status")
REQUEST_SOURCE = sa.Enum("manual", "text_chat", "voice_chat", name="request_source")


def upgrade():
    """Create all tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255)),
        sa.Column("role", sa.String(50), nullable=False, server_default="citizen"),
        sa.Column("phone", sa.String(20)),
        sa.Column("street", sa.String(255)),
        sa.Column("city", sa.String(100)),
        sa.Column("state", sa.String(100)),
        sa.Column("postal_code", sa.String(12)),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "service_requests",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("kind", REQUEST_KIND, nullable=False),
        sa.Column("requester_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("requester_name", sa.String(255), nullable=False),
        sa.Column("status", REQUEST_STATUS, nullable=False),
        sa.Column("priority", REQUEST_PRIORITY, nullable=False, server_default="medium"),
        sa.Column("blood_type", BLOOD_TYPE),
        sa.Column("service_type", sa.String(100)),
        sa.Column("due_date", sa.DateTime(timezone=True)),
        sa.Column("title", sa.String(200)),
        sa.Column("description", sa.Text),
        sa.Column("category", COMPLAINT_CATEGORY),
        sa.Column("street", sa.String(255)),
        sa.Column("city", sa.String(100)),
        sa.Column("state", sa.String(100)),
        sa.Column("postal_code", sa.String(12)),
        sa.Column("latitude", sa.Float),
        sa.Column("longitude", sa.Float),
        sa.Column("contact_phone", sa.String(20), nullable=False),
        sa.Column("contact_email", sa.String(255)),
        sa.Column("committed_volunteer_id", sa.Uuid(), sa.ForeignKey("users.id")),
        sa.Column("committed_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("source", REQUEST_SOURCE, nullable=False, server_default="manual"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "(latitude IS NULL AND longitude IS NULL) OR "
            "(latitude IS NOT NULL AND longitude IS NOT NULL)",
            name="ck_service_requests_coordinates_pair",
        ),
        sa.CheckConstraint(
            "(committed_volunteer_id IS NULL) = (committed_at IS NULL)",
            name="ck_service_requests_commitment_pair",
        ),
    )
    op.create_index("ix_service_requests_kind", "service_requests", ["kind"])
    op.create_index("ix_service_requests_requester_id", "service_requests", ["requester_id"])
    op.create_index("ix_service_requests_status", "service_requests", ["status"])
    op.create_index(
        "ix_service_requests_committed_volunteer_id", "service_requests", ["committed_volunteer_id"]
    )

    op.create_table(
        "volunteer_applications",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "request_id",
            sa.Uuid(),
            sa.ForeignKey("service_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("volunteer_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("message", sa.Text),
        sa.Column("estimated_time", sa.String(100)),
        sa.Column("status", APPLICATION_STATUS, nullable=False, server_default="pending"),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "request_id", "volunteer_id", name="uq_volunteer_applications_request_volunteer"
        ),
    )
    op.create_index(
        "ix_volunteer_applications_request_id", "volunteer_applications", ["request_id"]
    )

    op.create_table(
        "request_updates",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "request_id",
            sa.Uuid(),
            sa.ForeignKey("service_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("author_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("from_status", sa.String(20)),
        sa.Column("to_status", sa.String(20)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_request_updates_request_id", "request_updates", ["request_id"])

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("channel", sa.String(10), nullable=False),
        sa.Column("language", sa.String(10), nullable=False),
        sa.Column("user_message", sa.Text, nullable=False),
        sa.Column("bot_response", sa.Text, nullable=False),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False),
        sa.Column("classifier_source", sa.String(10), nullable=False),
        sa.Column("confidence", sa.Float),
        sa.Column(
            "request_id",
            sa.Uuid(),
            sa.ForeignKey("service_requests.id", ondelete="SET NULL"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_chat_messages_user_id", "chat_messages", ["user_id"])
    op.create_index("ix_chat_messages_created_at", "chat_messages", ["created_at"])


def downgrade():
    """Drop all tables and enum types."""
    op.drop_table("chat_messages")
    op.drop_table("request_updates")
    op.drop_table("volunteer_applications")
    op.drop_table("service_requests")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (
        REQUEST_SOURCE,
        APPLICATION_STATUS,
        COMPLAINT_CATEGORY,
        BLOOD_TYPE,
        REQUEST_PRIORITY,
        REQUEST_STATUS,
        REQUEST_KIND,
    ):
        enum_type.drop(bind, checkfirst=True)
