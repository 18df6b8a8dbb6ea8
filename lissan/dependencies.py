"""
Service dependencies

Services are built per request from the request's session; the event bus and
any webhook transport are process-wide and live on ``app.state``.
"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .database import get_db
from .services.chat_service import ChatService
from .services.document_service import DocumentService
from .services.event_bus import EventBus
from .services.llm_service import LLMService, get_llm_service
from .services.workflow_service import WorkflowService


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_document_service(
    db: Session = Depends(get_db),
    event_bus: EventBus = Depends(get_event_bus)
) -> DocumentService:
    """Dependency to get DocumentService instance"""
    return DocumentService(db, event_bus=event_bus)


def get_chat_service(
    db: Session = Depends(get_db),
    llm: LLMService = Depends(get_llm_service),
    event_bus: EventBus = Depends(get_event_bus)
) -> ChatService:
    """Dependency to get ChatService instance"""
    return ChatService(db, llm=llm, event_bus=event_bus)


def get_workflow_service(
    request: Request,
    db: Session = Depends(get_db),
    event_bus: EventBus = Depends(get_event_bus)
) -> WorkflowService:
    """Dependency to get WorkflowService instance"""
    transport = getattr(request.app.state, "webhook_transport", None)
    return WorkflowService(db, event_bus=event_bus, http_transport=transport)
