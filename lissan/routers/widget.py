"""
Widget API Router
Public endpoints called by the embeddable chat widget on a company's website.
Authenticated with the company's API key and rate limited per client address.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
import logging

from ..auth import get_api_key_company
from ..config import settings
from ..database import get_db
from ..dependencies import get_chat_service
from ..ratelimit import limiter
from .. import models, schemas
from ..services.chat_service import ChatService
from ..services.widget_service import WidgetService

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/config", response_model=schemas.WidgetConfigResponse)
@limiter.shared_limit(settings.widget_rate_limit, scope="widget")
async def get_widget_config(
    request: Request,
    db: Session = Depends(get_db),
    company: models.Company = Depends(get_api_key_company)
):
    widget_settings = WidgetService(db).get_settings(company.id)
    return schemas.WidgetConfigResponse(config=schemas.WidgetConfig.model_validate(widget_settings))

@router.post("/conversations", response_model=schemas.WidgetConversationResponse)
@limiter.shared_limit(settings.widget_rate_limit, scope="widget")
async def start_conversation(
    request: Request,
    body: schemas.WidgetConversationStart,
    company: models.Company = Depends(get_api_key_company),
    chat_service: ChatService = Depends(get_chat_service)
):
    """Resume the visitor's conversation, or start one on the first visit."""
    try:
        conversation, messages = chat_service.start_widget_conversation(
            company.id,
            body.visitor_id,
            language=body.language
        )
        return schemas.WidgetConversationResponse(
            conversation_id=conversation.id,
            messages=[schemas.MessageOut.model_validate(msg) for msg in messages]
        )

    except Exception as e:
        logger.error(f"Start widget conversation error: {e}")
        raise HTTPException(status_code=500, detail="Failed to initialize conversation")

@router.post("/conversations/{conversation_id}/messages", response_model=schemas.ChatTurnResponse)
@limiter.shared_limit(settings.widget_rate_limit, scope="widget")
async def send_widget_message(
    request: Request,
    conversation_id: str,
    body: schemas.WidgetMessageCreate,
    company: models.Company = Depends(get_api_key_company),
    chat_service: ChatService = Depends(get_chat_service)
):
    conversation = chat_service.get_widget_conversation(company.id, conversation_id, body.visitor_id)

    try:
        user_message, ai_message = await chat_service.get_ai_response(
            company_id=company.id,
            conversation_id=conversation.id,
            content=body.content,
            language=body.language
        )
        return schemas.ChatTurnResponse(
            user_message=schemas.MessageOut.model_validate(user_message),
            ai_message=schemas.MessageOut.model_validate(ai_message)
        )

    except Exception as e:
        logger.error(f"Widget chat error: {e}")
        raise HTTPException(status_code=500, detail="Failed to process message")
