from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime

Language = Literal['am', 'en', 'auto']

class APIModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )

class Pagination(APIModel):
    page: int
    limit: int
    total: int
    pages: int

# =============================================================================
# AUTHENTICATION SCHEMAS
# =============================================================================

class RegisterRequest(APIModel):
    # Presence and length are checked by register_company so clients get its messages
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None

class LoginRequest(APIModel):
    email: Optional[str] = None
    password: Optional[str] = None

class CompanyPublic(APIModel):
    id: str
    name: str
    email: str
    api_key: str
    created_at: Optional[datetime] = None

class CompanyProfile(CompanyPublic):
    is_active: bool
    updated_at: Optional[datetime] = None

class AuthResponse(APIModel):
    success: bool = True
    token: str
    company: CompanyPublic

class ProfileResponse(APIModel):
    success: bool = True
    company: CompanyProfile

class ApiKeyResponse(APIModel):
    success: bool = True
    api_key: str

# =============================================================================
# DOCUMENT SCHEMAS
# =============================================================================

class DocumentSummary(APIModel):
    id: str
    original_name: str
    file_type: str
    file_size: int
    language: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class DocumentDetail(DocumentSummary):
    filename: str
    content: Optional[str] = None
    company_id: str

class DocumentUploadResponse(APIModel):
    success: bool = True
    document: DocumentSummary

class DocumentResponse(APIModel):
    success: bool = True
    document: DocumentDetail

class DocumentListResponse(APIModel):
    success: bool = True
    documents: List[DocumentSummary]
    pagination: Pagination

# =============================================================================
# CONVERSATION SCHEMAS
# =============================================================================

class MessageOut(APIModel):
    id: str
    conversation_id: str
    role: str
    content: str
    language: str
    created_at: Optional[datetime] = None

class ConversationOut(APIModel):
    id: str
    company_id: str
    visitor_id: Optional[str] = None
    source: str
    title: Optional[str] = None
    language: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class ConversationListItem(ConversationOut):
    last_message: Optional[MessageOut] = None
    message_count: int = 0

class ConversationCreate(APIModel):
    title: Optional[str] = None
    language: Language = 'auto'

class ConversationResponse(APIModel):
    success: bool = True
    conversation: ConversationOut

class ConversationListResponse(APIModel):
    success: bool = True
    conversations: List[ConversationListItem]

class MessageListResponse(APIModel):
    success: bool = True
    messages: List[MessageOut]
    conversation: ConversationOut

class MessageCreate(APIModel):
    content: str
    language: Optional[Language] = None

    @field_validator('content')
    @classmethod
    def content_required(cls, v):
        if not v or not v.strip():
            raise ValueError('Message content is required')
        return v

class ChatTurnResponse(APIModel):
    success: bool = True
    user_message: MessageOut
    ai_message: MessageOut

class ChatRequest(APIModel):
    message: str
    language: Optional[Language] = None
    context: Optional[str] = None

    @field_validator('message')
    @classmethod
    def message_required(cls, v):
        if not v or not v.strip():
            raise ValueError('Message is required')
        return v

class ChatResponse(APIModel):
    success: bool = True
    response: str
    language: str

# =============================================================================
# WORKFLOW SCHEMAS
# =============================================================================

class WorkflowCreate(APIModel):
    name: str
    description: Optional[str] = None
    config: Dict[str, Any] = {}
    webhook_url: Optional[str] = None

    @field_validator('name')
    @classmethod
    def name_required(cls, v):
        if not v or not v.strip():
            raise ValueError('Workflow name is required')
        return v

class WorkflowUpdate(APIModel):
    name: Optional[str] = None
    description: Optional[str] = None
    config: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None
    webhook_url: Optional[str] = None

class WorkflowOut(APIModel):
    id: str
    company_id: str
    name: str
    description: Optional[str] = None
    config: Dict[str, Any] = {}
    webhook_url: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class WorkflowListItem(WorkflowOut):
    execution_count: int = 0

class WorkflowResponse(APIModel):
    success: bool = True
    workflow: WorkflowOut

class WorkflowListResponse(APIModel):
    success: bool = True
    workflows: List[WorkflowListItem]

class WorkflowExecuteRequest(APIModel):
    input: Dict[str, Any] = {}

class ExecutionOut(APIModel):
    id: str
    workflow_id: str
    status: Literal['running', 'completed', 'failed']
    input: Optional[Dict[str, Any]] = None
    output: Optional[Any] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

class ExecutionResponse(APIModel):
    success: bool = True
    execution: ExecutionOut

class ExecutionListResponse(APIModel):
    success: bool = True
    executions: List[ExecutionOut]
    pagination: Pagination

# =============================================================================
# WIDGET SCHEMAS
# =============================================================================

class WidgetConfig(APIModel):
    primary_color: str
    welcome_message: str
    welcome_message_am: str
    bot_name: str
    bot_name_am: str
    logo_url: Optional[str] = None
    is_enabled: bool

class WidgetSettingsOut(WidgetConfig):
    allowed_domains: List[str] = []

class WidgetSettingsUpdate(APIModel):
    primary_color: Optional[str] = None
    welcome_message: Optional[str] = None
    welcome_message_am: Optional[str] = None
    bot_name: Optional[str] = None
    bot_name_am: Optional[str] = None
    logo_url: Optional[str] = None
    allowed_domains: Optional[List[str]] = None
    is_enabled: Optional[bool] = None

class WidgetConfigResponse(APIModel):
    success: bool = True
    config: WidgetConfig

class WidgetSettingsResponse(APIModel):
    success: bool = True
    settings: WidgetSettingsOut

class WidgetConversationStart(APIModel):
    visitor_id: str
    language: Language = 'auto'

    @field_validator('visitor_id')
    @classmethod
    def visitor_required(cls, v):
        if not v or not v.strip():
            raise ValueError('visitorId is required')
        return v

class WidgetConversationResponse(APIModel):
    success: bool = True
    conversation_id: str
    messages: List[MessageOut]

class WidgetMessageCreate(APIModel):
    content: str
    visitor_id: str
    language: Optional[Language] = None

    @field_validator('content', 'visitor_id')
    @classmethod
    def fields_required(cls, v):
        if not v or not v.strip():
            raise ValueError('content and visitorId are required')
        return v

# =============================================================================
# DASHBOARD SCHEMAS
# =============================================================================

class StatsOverview(APIModel):
    total_documents: int
    total_conversations: int
    total_workflows: int
    active_workflows: int
    storage_used_mb: float = Field(..., serialization_alias="storageUsedMB")

class RecentActivityCounts(APIModel):
    documents_uploaded: int
    conversations_started: int
    workflow_executions: int

class LanguageCount(APIModel):
    language: str
    count: int

class StatusCount(APIModel):
    status: str
    count: int

class DashboardStats(APIModel):
    overview: StatsOverview
    recent_activity: RecentActivityCounts
    language_distribution: List[LanguageCount]
    workflow_executions: List[StatusCount]

class DashboardStatsResponse(APIModel):
    success: bool = True
    stats: DashboardStats

class Activity(APIModel):
    id: str
    type: Literal['document', 'conversation', 'workflow']
    title: str
    language: Optional[str] = None
    status: Optional[str] = None
    timestamp: Optional[datetime] = None
    metadata: Dict[str, Any] = {}

class ActivityListResponse(APIModel):
    success: bool = True
    activities: List[Activity]

class DailyCount(APIModel):
    date: str
    count: int

class DailyStatusCount(DailyCount):
    status: str

class Analytics(APIModel):
    period: int
    daily_documents: List[DailyCount]
    daily_conversations: List[DailyCount]
    workflow_trends: List[DailyStatusCount]
    language_usage: List[LanguageCount]

class AnalyticsResponse(APIModel):
    success: bool = True
    analytics: Analytics
