"""
AI API Router
Conversations, the assistant turn, and stateless single-shot chat
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
import logging

from ..auth import get_current_company
from ..dependencies import get_chat_service
from ..exceptions import LissanError
from .. import models, schemas
from ..services.chat_service import ChatService

router = APIRouter()
logger = logging.getLogger(__name__)

# Conversation Endpoints

@router.get("/conversations", response_model=schemas.ConversationListResponse)
async def list_conversations(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_company: models.Company = Depends(get_current_company),
    chat_service: ChatService = Depends(get_chat_service)
):
    """List conversations, most recently active first"""
    try:
        conversations = chat_service.list_conversations(current_company.id, page=page, limit=limit)
        return schemas.ConversationListResponse(conversations=conversations)

    except Exception as e:
        logger.error(f"Error listing conversations: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch conversations")

@router.post("/conversations", response_model=schemas.ConversationResponse, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    request: schemas.ConversationCreate,
    current_company: models.Company = Depends(get_current_company),
    chat_service: ChatService = Depends(get_chat_service)
):
    try:
        conversation = chat_service.create_conversation(
            current_company.id,
            title=request.title,
            language=request.language
        )
        return schemas.ConversationResponse(conversation=schemas.ConversationOut.model_validate(conversation))

    except Exception as e:
        logger.error(f"Error creating conversation: {e}")
        raise HTTPException(status_code=500, detail="Failed to create conversation")

@router.get("/conversations/{conversation_id}/messages", response_model=schemas.MessageListResponse)
async def get_messages(
    conversation_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    current_company: models.Company = Depends(get_current_company),
    chat_service: ChatService = Depends(get_chat_service)
):
    """Messages of one conversation, oldest first"""
    conversation = chat_service.get_conversation(current_company.id, conversation_id)
    messages = chat_service.get_messages(conversation.id, page=page, limit=limit)

    return schemas.MessageListResponse(
        messages=[schemas.MessageOut.model_validate(msg) for msg in messages],
        conversation=schemas.ConversationOut.model_validate(conversation)
    )

@router.post("/conversations/{conversation_id}/messages", response_model=schemas.ChatTurnResponse)
async def send_message(
    conversation_id: str,
    request: schemas.MessageCreate,
    current_company: models.Company = Depends(get_current_company),
    chat_service: ChatService = Depends(get_chat_service)
):
    """Send a message and get the assistant's reply"""
    conversation = chat_service.get_conversation(current_company.id, conversation_id)

    try:
        user_message, ai_message = await chat_service.get_ai_response(
            company_id=current_company.id,
            conversation_id=conversation.id,
            content=request.content,
            language=request.language
        )

        return schemas.ChatTurnResponse(
            user_message=schemas.MessageOut.model_validate(user_message),
            ai_message=schemas.MessageOut.model_validate(ai_message)
        )

    except Exception as e:
        logger.error(f"Chat pipeline failed for conversation {conversation_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to process message")

@router.delete("/conversations/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    current_company: models.Company = Depends(get_current_company),
    chat_service: ChatService = Depends(get_chat_service)
):
    try:
        chat_service.delete_conversation(current_company.id, conversation_id)
        return {"success": True, "message": "Conversation deleted successfully"}

    except LissanError:
        raise
    except Exception as e:
        logger.error(f"Error deleting conversation {conversation_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete conversation")

# Stateless Chat

@router.post("/chat", response_model=schemas.ChatResponse)
async def chat(
    request: schemas.ChatRequest,
    current_company: models.Company = Depends(get_current_company),
    chat_service: ChatService = Depends(get_chat_service)
):
    """Single-shot chat; nothing is stored"""
    try:
        reply, language = await chat_service.chat_once(
            request.message,
            language=request.language,
            context=request.context
        )
        return schemas.ChatResponse(response=reply, language=language)

    except Exception as e:
        logger.error(f"Stateless chat failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to process chat message")
