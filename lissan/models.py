from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, ForeignKey, UniqueConstraint, CheckConstraint, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from .database import Base
import secrets
import uuid


def generate_id() -> str:
    return str(uuid.uuid4())

def generate_api_key() -> str:
    return secrets.token_urlsafe(32)

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

# =============================================================================
# TENANT MODELS
# =============================================================================

class Company(Base):
    """Tenant root; every other row hangs off a company"""
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    api_key = Column(String(100), unique=True, index=True, nullable=False, default=generate_api_key)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    documents = relationship("Document", back_populates="company", cascade="all, delete-orphan")
    conversations = relationship("Conversation", back_populates="company", cascade="all, delete-orphan")
    workflows = relationship("Workflow", back_populates="company", cascade="all, delete-orphan")
    widget_settings = relationship("WidgetSettings", back_populates="company", uselist=False, cascade="all, delete-orphan")

class WidgetSettings(Base):
    """Per-company customization of the embeddable chat widget"""
    __tablename__ = "widget_settings"

    id = Column(String(36), primary_key=True, default=generate_id)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), unique=True, nullable=False)
    primary_color = Column(String(20), default="#2563eb")
    welcome_message = Column(Text, default="Hello! How can I help you today?")
    welcome_message_am = Column(Text, default="ሰላም! እንዴት ልረዳዎት እችላለሁ?")
    bot_name = Column(String(100), default="AI Assistant")
    bot_name_am = Column(String(100), default="AI ረዳት")
    logo_url = Column(String(500), nullable=True)
    allowed_domains = Column(JSON, default=list)
    is_enabled = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    company = relationship("Company", back_populates="widget_settings")

# =============================================================================
# DOCUMENT MODELS
# =============================================================================

class Document(Base):
    """Uploaded file metadata plus its extracted text"""
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=generate_id)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)  # stored name under upload_path
    original_name = Column(String(255), nullable=False)
    file_type = Column(String(150), nullable=False)  # MIME type
    file_size = Column(Integer, nullable=False, default=0)
    content = Column(Text, nullable=True)
    language = Column(String(10), nullable=False, default="auto")  # am, en, auto
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    company = relationship("Company", back_populates="documents")

    __table_args__ = (
        Index("ix_documents_company_language", "company_id", "language"),
    )

# =============================================================================
# CONVERSATION MODELS
# =============================================================================

class Conversation(Base):
    """A chat thread started from the dashboard or from the widget"""
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=generate_id)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    visitor_id = Column(String(100), nullable=True)  # widget conversations only
    source = Column(String(20), nullable=False, default="dashboard")  # dashboard, widget
    title = Column(String(255), nullable=True)
    language = Column(String(10), nullable=False, default="auto")
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    company = relationship("Company", back_populates="conversations")
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.created_at"
    )

    __table_args__ = (
        CheckConstraint("source IN ('dashboard', 'widget')", name='check_conversation_source'),
        # NULL visitor_id (dashboard) rows never collide
        UniqueConstraint("company_id", "visitor_id", "source", name="unique_widget_visitor_conversation"),
    )

class Message(Base):
    """One append-only turn of a conversation"""
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=generate_id)
    conversation_id = Column(String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False)  # user, assistant
    content = Column(Text, nullable=False)
    language = Column(String(10), nullable=False, default="en")
    # Python-side default keeps sub-second precision, history ordering relies on it
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    conversation = relationship("Conversation", back_populates="messages")

    __table_args__ = (
        CheckConstraint("role IN ('user', 'assistant')", name='check_message_role'),
    )

# =============================================================================
# WORKFLOW MODELS
# =============================================================================

class Workflow(Base):
    """Automation definition: a built-in handler (config.type) or an external webhook"""
    __tablename__ = "workflows"

    id = Column(String(36), primary_key=True, default=generate_id)
    company_id = Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    config = Column(JSON, default=dict)
    webhook_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    company = relationship("Company", back_populates="workflows")
    executions = relationship("WorkflowExecution", back_populates="workflow", cascade="all, delete-orphan")

class WorkflowExecution(Base):
    """One run of a workflow; status only moves running -> completed | failed"""
    __tablename__ = "workflow_executions"

    TERMINAL_STATUSES = ("completed", "failed")

    id = Column(String(36), primary_key=True, default=generate_id)
    workflow_id = Column(String(36), ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="running")
    input = Column(JSON, default=dict)
    output = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    workflow = relationship("Workflow", back_populates="executions")

    __table_args__ = (
        CheckConstraint("status IN ('running', 'completed', 'failed')", name='check_execution_status'),
    )

    def finish(self, status: str, output=None, error: str = None):
        """Move a running execution into a terminal state."""
        if status not in self.TERMINAL_STATUSES:
            raise ValueError(f"Invalid terminal status: {status}")
        if self.status != "running":
            raise ValueError(f"Execution {self.id} is already {self.status}")
        self.status = status
        self.output = output
        self.error = error
        self.completed_at = utcnow()
