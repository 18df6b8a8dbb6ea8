"""
Chat Service
Conversation storage and the assistant response pipeline:
history + retrieved documents + language-specific system prompt -> LLM -> stored reply
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..config import settings
from ..exceptions import NotFoundError
from .event_bus import DomainEvent, EventBus, NEW_MESSAGE
from .language_service import get_system_prompt, resolve_language
from .llm_service import LLMService

logger = logging.getLogger(__name__)


def message_payload(message: models.Message) -> dict:
    return schemas.MessageOut.model_validate(message).model_dump(by_alias=True, mode="json")


def build_document_context(documents: List[models.Document], excerpt_chars: int) -> str:
    """Label each document excerpt with its filename; blocks are separated by a blank line."""
    return '\n\n'.join(
        f"Document: {doc.original_name}\nContent: {(doc.content or '')[:excerpt_chars]}..."
        for doc in documents
    )


def build_prompt(language: str, document_context: str, history: List[Dict[str, str]]) -> List[Dict[str, str]]:
    messages = [{"role": "system", "content": get_system_prompt(language)}]
    if document_context:
        messages.append({"role": "system", "content": f"Available Documents:\n{document_context}"})
    messages.extend(history)
    return messages


class ChatService:
    """Tenant-scoped conversations and the assistant turn pipeline"""

    def __init__(self, db: Session, llm: Optional[LLMService] = None, event_bus: Optional[EventBus] = None):
        self.db = db
        self.llm = llm
        self.event_bus = event_bus

    # =============================================================================
    # CONVERSATIONS
    # =============================================================================

    def create_conversation(self, company_id: str, title: Optional[str] = None, language: str = 'auto') -> models.Conversation:
        conversation = models.Conversation(
            company_id=company_id,
            source='dashboard',
            title=title or 'New Conversation',
            language=language
        )
        self.db.add(conversation)
        self.db.commit()
        self.db.refresh(conversation)
        return conversation

    def list_conversations(self, company_id: str, page: int = 1, limit: int = 20) -> List[schemas.ConversationListItem]:
        """Conversations, most recently active first, each with its last message and message count"""
        conversations = self.db.query(models.Conversation).filter(
            models.Conversation.company_id == company_id
        ).order_by(
            models.Conversation.updated_at.desc()
        ).offset((page - 1) * limit).limit(limit).all()

        items = []
        for conversation in conversations:
            last_message = self.db.query(models.Message).filter(
                models.Message.conversation_id == conversation.id
            ).order_by(models.Message.created_at.desc()).first()

            message_count = self.db.query(func.count(models.Message.id)).filter(
                models.Message.conversation_id == conversation.id
            ).scalar() or 0

            item = schemas.ConversationListItem.model_validate(conversation)
            item.last_message = schemas.MessageOut.model_validate(last_message) if last_message else None
            item.message_count = message_count
            items.append(item)

        return items

    def get_conversation(self, company_id: str, conversation_id: str) -> models.Conversation:
        conversation = self.db.query(models.Conversation).filter(
            models.Conversation.id == conversation_id,
            models.Conversation.company_id == company_id
        ).first()
        if not conversation:
            raise NotFoundError("Conversation")
        return conversation

    def get_messages(self, conversation_id: str, page: int = 1, limit: int = 50) -> List[models.Message]:
        """Messages in creation order"""
        return self.db.query(models.Message).filter(
            models.Message.conversation_id == conversation_id
        ).order_by(
            models.Message.created_at.asc()
        ).offset((page - 1) * limit).limit(limit).all()

    def delete_conversation(self, company_id: str, conversation_id: str):
        conversation = self.get_conversation(company_id, conversation_id)
        self.db.delete(conversation)
        self.db.commit()

    # =============================================================================
    # WIDGET CONVERSATIONS
    # =============================================================================

    def _find_widget_conversation(self, company_id: str, visitor_id: str) -> Optional[models.Conversation]:
        return self.db.query(models.Conversation).filter(
            models.Conversation.company_id == company_id,
            models.Conversation.visitor_id == visitor_id,
            models.Conversation.source == 'widget'
        ).first()

    def start_widget_conversation(self, company_id: str, visitor_id: str, language: str = 'auto') -> Tuple[models.Conversation, List[models.Message]]:
        """Resume the visitor's conversation or open one; never more than one per visitor"""
        conversation = self._find_widget_conversation(company_id, visitor_id)

        if not conversation:
            conversation = models.Conversation(
                company_id=company_id,
                visitor_id=visitor_id,
                source='widget',
                language=language,
                title=f"Visitor Session: {visitor_id[:8]}"
            )
            self.db.add(conversation)
            try:
                self.db.commit()
            except IntegrityError:
                # A concurrent request created it first
                self.db.rollback()
                conversation = self._find_widget_conversation(company_id, visitor_id)
                if conversation is None:
                    raise
            else:
                self.db.refresh(conversation)
                logger.info(f"Opened widget conversation {conversation.id} for company {company_id}")

        return conversation, self.get_messages(conversation.id, page=1, limit=50)

    def get_widget_conversation(self, company_id: str, conversation_id: str, visitor_id: str) -> models.Conversation:
        conversation = self.db.query(models.Conversation).filter(
            models.Conversation.id == conversation_id,
            models.Conversation.company_id == company_id,
            models.Conversation.visitor_id == visitor_id
        ).first()
        if not conversation:
            raise NotFoundError("Conversation", "Conversation not found or access denied")
        return conversation

    # =============================================================================
    # CONTEXT ASSEMBLY
    # =============================================================================

    def get_history(self, conversation_id: str, limit: Optional[int] = None) -> List[Dict[str, str]]:
        """The most recent messages, oldest first, as {role, content} pairs"""
        recent = self.db.query(models.Message).filter(
            models.Message.conversation_id == conversation_id
        ).order_by(
            models.Message.created_at.desc()
        ).limit(limit or settings.history_limit).all()

        return [
            {"role": "user" if msg.role == "user" else "assistant", "content": msg.content}
            for msg in reversed(recent)
        ]

    def get_context_documents(self, company_id: str, language: str, limit: Optional[int] = None) -> List[models.Document]:
        """Documents tagged with the language or 'auto'; no ranking, store order decides which fit"""
        return self.db.query(models.Document).filter(
            models.Document.company_id == company_id,
            models.Document.language.in_([language, 'auto'])
        ).limit(limit or settings.context_document_limit).all()

    # =============================================================================
    # RESPONSE PIPELINE
    # =============================================================================

    async def get_ai_response(
        self,
        company_id: str,
        conversation_id: str,
        content: str,
        language: Optional[str] = None
    ) -> Tuple[models.Message, models.Message]:
        """Run one assistant turn; the user message is committed before the LLM call."""
        resolved_language = resolve_language(content, language)

        user_message = models.Message(
            conversation_id=conversation_id,
            role='user',
            content=content,
            language=resolved_language
        )
        self.db.add(user_message)
        self.db.commit()
        self.db.refresh(user_message)

        history = self.get_history(conversation_id)
        documents = self.get_context_documents(company_id, resolved_language)
        document_context = build_document_context(documents, settings.context_excerpt_chars)
        prompt = build_prompt(resolved_language, document_context, history)

        reply = await self.llm.complete(prompt, max_completion_tokens=settings.chat_max_tokens)

        ai_message = models.Message(
            conversation_id=conversation_id,
            role='assistant',
            content=reply,
            language=resolved_language
        )
        self.db.add(ai_message)
        self.db.query(models.Conversation).filter(
            models.Conversation.id == conversation_id
        ).update({models.Conversation.updated_at: models.utcnow()}, synchronize_session=False)
        self.db.commit()
        self.db.refresh(ai_message)

        logger.info(f"Conversation {conversation_id}: answered in '{resolved_language}' with {len(documents)} context documents")

        if self.event_bus:
            await self.event_bus.publish(DomainEvent(company_id=company_id, name=NEW_MESSAGE, payload={
                "conversationId": conversation_id,
                "userMessage": message_payload(user_message),
                "aiMessage": message_payload(ai_message)
            }))

        return user_message, ai_message

    async def chat_once(self, message: str, language: Optional[str] = None, context: Optional[str] = None) -> Tuple[str, str]:
        """Stateless single-shot chat; nothing is stored."""
        resolved_language = resolve_language(message, language)

        messages = [{"role": "system", "content": get_system_prompt(resolved_language)}]
        if context:
            messages.append({"role": "system", "content": f"Context: {context}"})
        messages.append({"role": "user", "content": message})

        reply = await self.llm.complete(messages, max_completion_tokens=settings.api_chat_max_tokens)
        return reply, resolved_language
