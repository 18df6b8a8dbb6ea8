"""
Workflow Service
Workflow CRUD plus execution: forward to an external webhook, or run one of the
built-in handlers selected by the ``type`` field of the workflow config
"""

import math
import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional, Tuple, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..config import settings
from ..exceptions import ExternalServiceError, NotFoundError, UnknownWorkflowTypeError, ValidationError
from .event_bus import DomainEvent, EventBus, WORKFLOW_COMPLETED
from .language_service import has_amharic

logger = logging.getLogger(__name__)

# =============================================================================
# BUILT-IN WORKFLOW KINDS
# =============================================================================

class _BuiltinConfig(BaseModel):
    model_config = ConfigDict(extra='allow')

class DocumentSummaryConfig(_BuiltinConfig):
    type: Literal['document-summary']

class LanguageTranslationConfig(_BuiltinConfig):
    type: Literal['language-translation']

class AmharicEnglishTranslationConfig(_BuiltinConfig):
    type: Literal['amharic-english-translation']

class DataExtractionConfig(_BuiltinConfig):
    type: Literal['data-extraction']

BuiltinWorkflowConfig = Annotated[
    Union[DocumentSummaryConfig, LanguageTranslationConfig, AmharicEnglishTranslationConfig, DataExtractionConfig],
    Field(discriminator='type')
]

_config_adapter = TypeAdapter(BuiltinWorkflowConfig)


def parse_workflow_config(config: Optional[Dict[str, Any]]) -> BaseModel:
    """Resolve a stored config dict to its workflow kind."""
    try:
        return _config_adapter.validate_python(config or {})
    except PydanticValidationError:
        raise UnknownWorkflowTypeError((config or {}).get('type'))


class WorkflowService:
    """Tenant-scoped workflows and their executions"""

    SUMMARY_DOCUMENT_LIMIT = 5

    def __init__(
        self,
        db: Session,
        event_bus: Optional[EventBus] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.db = db
        self.event_bus = event_bus
        self.http_transport = http_transport
        self._handlers: Dict[type, Callable[[str, Dict[str, Any]], Dict[str, Any]]] = {
            DocumentSummaryConfig: self._document_summary,
            LanguageTranslationConfig: self._language_translation,
            AmharicEnglishTranslationConfig: self._amharic_english_translation,
            DataExtractionConfig: self._data_extraction,
        }

    # =============================================================================
    # CRUD
    # =============================================================================

    def create_workflow(self, company_id: str, data: schemas.WorkflowCreate) -> models.Workflow:
        workflow = models.Workflow(
            company_id=company_id,
            name=data.name,
            description=data.description,
            config=data.config or {},
            webhook_url=data.webhook_url or None,
            is_active=True
        )
        self.db.add(workflow)
        self.db.commit()
        self.db.refresh(workflow)
        return workflow

    def list_workflows(self, company_id: str) -> List[schemas.WorkflowListItem]:
        workflows = self.db.query(models.Workflow).filter(
            models.Workflow.company_id == company_id
        ).order_by(models.Workflow.created_at.desc()).all()

        counts = dict(
            self.db.query(models.WorkflowExecution.workflow_id, func.count(models.WorkflowExecution.id))
            .join(models.Workflow)
            .filter(models.Workflow.company_id == company_id)
            .group_by(models.WorkflowExecution.workflow_id)
            .all()
        )

        items = []
        for workflow in workflows:
            item = schemas.WorkflowListItem.model_validate(workflow)
            item.execution_count = counts.get(workflow.id, 0)
            items.append(item)
        return items

    def get_workflow(self, company_id: str, workflow_id: str) -> models.Workflow:
        workflow = self.db.query(models.Workflow).filter(
            models.Workflow.id == workflow_id,
            models.Workflow.company_id == company_id
        ).first()
        if not workflow:
            raise NotFoundError("Workflow")
        return workflow

    def update_workflow(self, company_id: str, workflow_id: str, data: schemas.WorkflowUpdate) -> models.Workflow:
        workflow = self.get_workflow(company_id, workflow_id)

        if data.name:
            workflow.name = data.name
        if data.description is not None:
            workflow.description = data.description
        if data.config is not None:
            workflow.config = data.config
        if data.is_active is not None:
            workflow.is_active = data.is_active
        if data.webhook_url is not None:
            workflow.webhook_url = data.webhook_url or None

        self.db.commit()
        self.db.refresh(workflow)
        return workflow

    def delete_workflow(self, company_id: str, workflow_id: str):
        workflow = self.get_workflow(company_id, workflow_id)
        self.db.delete(workflow)
        self.db.commit()

    def list_executions(self, company_id: str, workflow_id: str, page: int = 1, limit: int = 20) -> Tuple[List[models.WorkflowExecution], schemas.Pagination]:
        workflow = self.get_workflow(company_id, workflow_id)

        query = self.db.query(models.WorkflowExecution).filter(
            models.WorkflowExecution.workflow_id == workflow.id
        )
        total = query.count()
        executions = query.order_by(
            models.WorkflowExecution.started_at.desc()
        ).offset((page - 1) * limit).limit(limit).all()

        return executions, schemas.Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if limit else 0
        )

    # =============================================================================
    # EXECUTION
    # =============================================================================

    def get_runnable_workflow(self, company_id: str, workflow_id: str) -> models.Workflow:
        workflow = self.get_workflow(company_id, workflow_id)
        if not workflow.is_active:
            raise ValidationError("Workflow is not active")
        return workflow

    async def execute(self, workflow: models.Workflow, input_data: Optional[Dict[str, Any]] = None) -> models.WorkflowExecution:
        """
        Run a workflow once and record the outcome

        The execution row is committed as 'running' first; it then ends up
        'completed' with the output or 'failed' with the error, and the
        original error is re-raised.
        """
        input_data = input_data or {}
        execution = models.WorkflowExecution(
            workflow_id=workflow.id,
            status="running",
            input=input_data,
            started_at=models.utcnow()
        )
        self.db.add(execution)
        self.db.commit()
        self.db.refresh(execution)

        logger.info(f"Starting workflow execution {execution.id} for workflow {workflow.id}: {workflow.name}")

        try:
            if workflow.webhook_url:
                output = await self._call_webhook(workflow, execution, input_data)
            else:
                config = parse_workflow_config(workflow.config)
                output = self._handlers[type(config)](workflow.company_id, input_data)
        except Exception as e:
            # A failed flush leaves the session unusable until rolled back
            self.db.rollback()
            self._fail_execution(execution, str(e))
            raise

        self._complete_execution(execution, output)

        if self.event_bus:
            await self.event_bus.publish(DomainEvent(company_id=workflow.company_id, name=WORKFLOW_COMPLETED, payload={
                "workflowId": workflow.id,
                "executionId": execution.id,
                "status": execution.status,
                "output": output
            }))

        return execution

    def _complete_execution(self, execution: models.WorkflowExecution, output: Any):
        """Mark execution as completed"""
        execution.finish("completed", output=output)
        logger.info(f"Workflow execution {execution.id} completed")
        self.db.commit()

    def _fail_execution(self, execution: models.WorkflowExecution, error_message: str):
        """Mark execution as failed"""
        execution.finish("failed", error=error_message)
        logger.error(f"Workflow execution {execution.id} failed: {error_message}")
        self.db.commit()

    async def _call_webhook(self, workflow: models.Workflow, execution: models.WorkflowExecution, input_data: Dict[str, Any]) -> Any:
        envelope = {
            "companyId": workflow.company_id,
            "workflowId": workflow.id,
            "executionId": execution.id,
            "input": input_data,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

        try:
            async with httpx.AsyncClient(timeout=settings.webhook_timeout_seconds, transport=self.http_transport) as client:
                response = await client.post(workflow.webhook_url, json=envelope)
                response.raise_for_status()
        except httpx.TimeoutException as e:
            raise ExternalServiceError(f"Webhook timed out after {settings.webhook_timeout_seconds:g}s") from e
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(f"Webhook returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Webhook request failed: {e}") from e

        try:
            return response.json()
        except ValueError:
            return response.text

    # =============================================================================
    # BUILT-IN HANDLERS
    # =============================================================================

    def _document_summary(self, company_id: str, input_data: Dict[str, Any]) -> Dict[str, Any]:
        documents = self.db.query(models.Document).filter(
            models.Document.company_id == company_id
        ).limit(self.SUMMARY_DOCUMENT_LIMIT).all()

        return {
            "summary": f"Processed {len(documents)} documents",
            "documents": [
                {"name": doc.original_name, "language": doc.language, "size": doc.file_size}
                for doc in documents
            ]
        }

    def _language_translation(self, company_id: str, input_data: Dict[str, Any]) -> Dict[str, Any]:
        text = input_data.get("text")
        target_language = input_data.get("targetLanguage")
        if not text or not target_language:
            raise ValidationError("Text and target language are required")

        # Mock translation
        return {
            "originalText": text,
            "translatedText": f"[{target_language.upper()}] {text}",
            "targetLanguage": target_language
        }

    def _amharic_english_translation(self, company_id: str, input_data: Dict[str, Any]) -> Dict[str, Any]:
        text = input_data.get("text")
        direction = input_data.get("direction") or "am-to-en"
        if not text:
            raise ValidationError("Text is required")

        return {
            "originalText": text,
            "translatedText": f"[ENGLISH] {text}" if direction == "am-to-en" else f"[AMHARIC] {text}",
            "direction": direction,
            "detectedLanguage": "amharic" if has_amharic(text) else "english"
        }

    def _data_extraction(self, company_id: str, input_data: Dict[str, Any]) -> Dict[str, Any]:
        documents = self.db.query(models.Document).filter(
            models.Document.company_id == company_id
        ).all()

        return {
            "extractedData": [
                {
                    "filename": doc.original_name,
                    "language": doc.language,
                    "wordCount": len(doc.content.split(' ')) if doc.content else 0,
                    "hasAmharicContent": has_amharic(doc.content or '')
                }
                for doc in documents
            ]
        }
