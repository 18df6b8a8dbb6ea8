from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session
from sqlalchemy import func, desc
from typing import Optional
from datetime import datetime, timedelta, timezone
import csv
import io
import logging

from ..database import get_db
from ..auth import get_current_company
from ..exceptions import ValidationError
from .. import models, schemas
from ..services.widget_service import WidgetService

router = APIRouter()
logger = logging.getLogger(__name__)

EXPORT_TYPES = ('documents', 'conversations', 'workflows')

@router.get("/stats", response_model=schemas.DashboardStatsResponse)
async def get_dashboard_stats(
    db: Session = Depends(get_db),
    current_company: models.Company = Depends(get_current_company)
):
    """Get main dashboard statistics."""
    try:
        company_id = current_company.id

        total_documents = db.query(models.Document).filter(models.Document.company_id == company_id).count()
        total_conversations = db.query(models.Conversation).filter(models.Conversation.company_id == company_id).count()
        total_workflows = db.query(models.Workflow).filter(models.Workflow.company_id == company_id).count()
        active_workflows = db.query(models.Workflow).filter(
            models.Workflow.company_id == company_id,
            models.Workflow.is_active == True
        ).count()

        language_stats = db.query(models.Document.language, func.count(models.Document.id)).filter(
            models.Document.company_id == company_id
        ).group_by(models.Document.language).all()

        # Recent activity (last 30 days)
        thirty_days_ago = datetime.now(timezone.utc) - timedelta(days=30)
        recent_documents = db.query(models.Document).filter(
            models.Document.company_id == company_id,
            models.Document.created_at >= thirty_days_ago
        ).count()
        recent_conversations = db.query(models.Conversation).filter(
            models.Conversation.company_id == company_id,
            models.Conversation.created_at >= thirty_days_ago
        ).count()

        execution_stats = db.query(
            models.WorkflowExecution.status, func.count(models.WorkflowExecution.id)
        ).join(models.Workflow).filter(
            models.Workflow.company_id == company_id,
            models.WorkflowExecution.started_at >= thirty_days_ago
        ).group_by(models.WorkflowExecution.status).all()

        total_storage_bytes = db.query(func.sum(models.Document.file_size)).filter(
            models.Document.company_id == company_id
        ).scalar() or 0

        return schemas.DashboardStatsResponse(stats=schemas.DashboardStats(
            overview=schemas.StatsOverview(
                total_documents=total_documents,
                total_conversations=total_conversations,
                total_workflows=total_workflows,
                active_workflows=active_workflows,
                storage_used_mb=round(total_storage_bytes / (1024 * 1024), 2)
            ),
            recent_activity=schemas.RecentActivityCounts(
                documents_uploaded=recent_documents,
                conversations_started=recent_conversations,
                workflow_executions=sum(count for _, count in execution_stats)
            ),
            language_distribution=[
                schemas.LanguageCount(language=language or 'unknown', count=count)
                for language, count in language_stats
            ],
            workflow_executions=[
                schemas.StatusCount(status=exec_status, count=count)
                for exec_status, count in execution_stats
            ]
        ))

    except Exception as e:
        logger.error(f"Dashboard stats error: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve dashboard statistics")

@router.get("/activities", response_model=schemas.ActivityListResponse)
async def get_activities(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_company: models.Company = Depends(get_current_company)
):
    """Recent documents, conversations and executions merged into one feed."""
    try:
        company_id = current_company.id
        per_kind = limit // 3

        recent_documents = db.query(models.Document).filter(
            models.Document.company_id == company_id
        ).order_by(desc(models.Document.created_at)).limit(per_kind).all()

        recent_conversations = db.query(models.Conversation).filter(
            models.Conversation.company_id == company_id
        ).order_by(desc(models.Conversation.updated_at)).limit(per_kind).all()

        recent_executions = db.query(models.WorkflowExecution).join(models.Workflow).filter(
            models.Workflow.company_id == company_id
        ).order_by(desc(models.WorkflowExecution.started_at)).limit(per_kind).all()

        activities = []
        for doc in recent_documents:
            activities.append(schemas.Activity(
                id=doc.id,
                type='document',
                title=f"Document uploaded: {doc.original_name}",
                language=doc.language,
                timestamp=doc.created_at,
                metadata={"originalName": doc.original_name}
            ))
        for conv in recent_conversations:
            activities.append(schemas.Activity(
                id=conv.id,
                type='conversation',
                title=conv.title or 'New Conversation',
                language=conv.language,
                timestamp=conv.created_at,
                metadata={"messageCount": len(conv.messages)}
            ))
        for execution in recent_executions:
            activities.append(schemas.Activity(
                id=execution.id,
                type='workflow',
                title=f"Workflow executed: {execution.workflow.name}",
                status=execution.status,
                timestamp=execution.started_at,
                metadata={
                    "workflowName": execution.workflow.name,
                    "status": execution.status,
                    "completedAt": execution.completed_at
                }
            ))

        activities.sort(key=lambda a: a.timestamp, reverse=True)
        return schemas.ActivityListResponse(activities=activities[:limit])

    except Exception as e:
        logger.error(f"Dashboard activities error: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve activities")

@router.get("/analytics", response_model=schemas.AnalyticsResponse)
async def get_analytics(
    period: int = Query(30, ge=1, le=365, description="Days to look back"),
    db: Session = Depends(get_db),
    current_company: models.Company = Depends(get_current_company)
):
    """Daily counts and language usage for charts."""
    try:
        company_id = current_company.id
        start_date = datetime.now(timezone.utc) - timedelta(days=period)

        document_day = func.date(models.Document.created_at)
        daily_documents = db.query(document_day, func.count(models.Document.id)).filter(
            models.Document.company_id == company_id,
            models.Document.created_at >= start_date
        ).group_by(document_day).order_by(document_day).all()

        conversation_day = func.date(models.Conversation.created_at)
        daily_conversations = db.query(conversation_day, func.count(models.Conversation.id)).filter(
            models.Conversation.company_id == company_id,
            models.Conversation.created_at >= start_date
        ).group_by(conversation_day).order_by(conversation_day).all()

        execution_day = func.date(models.WorkflowExecution.started_at)
        workflow_trends = db.query(
            execution_day, models.WorkflowExecution.status, func.count(models.WorkflowExecution.id)
        ).join(models.Workflow).filter(
            models.Workflow.company_id == company_id,
            models.WorkflowExecution.started_at >= start_date
        ).group_by(execution_day, models.WorkflowExecution.status).order_by(execution_day).all()

        language_count = func.count(models.Document.id)
        language_usage = db.query(models.Document.language, language_count).filter(
            models.Document.company_id == company_id,
            models.Document.created_at >= start_date
        ).group_by(models.Document.language).order_by(desc(language_count)).all()

        return schemas.AnalyticsResponse(analytics=schemas.Analytics(
            period=period,
            daily_documents=[schemas.DailyCount(date=str(day), count=count) for day, count in daily_documents],
            daily_conversations=[schemas.DailyCount(date=str(day), count=count) for day, count in daily_conversations],
            workflow_trends=[
                schemas.DailyStatusCount(date=str(day), status=exec_status, count=count)
                for day, exec_status, count in workflow_trends
            ],
            language_usage=[
                schemas.LanguageCount(language=language or 'unknown', count=count)
                for language, count in language_usage
            ]
        ))

    except Exception as e:
        logger.error(f"Dashboard analytics error: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve analytics data")

@router.get("/export")
async def export_data(
    type: Optional[str] = Query(None),
    format: str = Query("json"),
    db: Session = Depends(get_db),
    current_company: models.Company = Depends(get_current_company)
):
    """Export documents, conversations or workflows as JSON; documents also as CSV."""
    if type not in EXPORT_TYPES:
        raise ValidationError("Invalid export type")

    try:
        company_id = current_company.id

        if type == 'documents':
            documents = db.query(models.Document).filter(models.Document.company_id == company_id).all()
            data = [
                {
                    "originalName": doc.original_name,
                    "fileType": doc.file_type,
                    "fileSize": doc.file_size,
                    "language": doc.language,
                    "createdAt": doc.created_at
                }
                for doc in documents
            ]
        elif type == 'conversations':
            conversations = db.query(models.Conversation).filter(models.Conversation.company_id == company_id).all()
            data = [
                {
                    "id": conv.id,
                    "title": conv.title,
                    "source": conv.source,
                    "language": conv.language,
                    "createdAt": conv.created_at,
                    "messages": [
                        {"content": m.content, "role": m.role, "language": m.language, "createdAt": m.created_at}
                        for m in conv.messages
                    ]
                }
                for conv in conversations
            ]
        else:
            workflows = db.query(models.Workflow).filter(models.Workflow.company_id == company_id).all()
            data = [
                {
                    "id": wf.id,
                    "name": wf.name,
                    "description": wf.description,
                    "config": wf.config,
                    "isActive": wf.is_active,
                    "createdAt": wf.created_at,
                    "executions": [
                        {"status": e.status, "startedAt": e.started_at, "completedAt": e.completed_at}
                        for e in wf.executions
                    ]
                }
                for wf in workflows
            ]

        if format == 'csv' and type == 'documents':
            buffer = io.StringIO()
            writer = csv.writer(buffer)
            writer.writerow(["Name", "Type", "Size", "Language", "Created"])
            for item in data:
                writer.writerow([
                    item["originalName"],
                    item["fileType"],
                    item["fileSize"],
                    item["language"],
                    item["createdAt"].isoformat() if item["createdAt"] else ""
                ])
            return Response(
                content=buffer.getvalue(),
                media_type="text/csv",
                headers={"Content-Disposition": f'attachment; filename="{type}_export.csv"'}
            )

        return jsonable_encoder({
            "success": True,
            "data": data,
            "exportedAt": datetime.now(timezone.utc),
            "type": type,
            "count": len(data)
        })

    except Exception as e:
        logger.error(f"Export error: {e}")
        raise HTTPException(status_code=500, detail="Failed to export data")

# =============================================================================
# WIDGET SETTINGS
# =============================================================================

@router.get("/widget-settings", response_model=schemas.WidgetSettingsResponse)
async def get_widget_settings(
    db: Session = Depends(get_db),
    current_company: models.Company = Depends(get_current_company)
):
    widget_settings = WidgetService(db).get_settings(current_company.id)
    return schemas.WidgetSettingsResponse(settings=schemas.WidgetSettingsOut.model_validate(widget_settings))

@router.put("/widget-settings", response_model=schemas.WidgetSettingsResponse)
async def update_widget_settings(
    update: schemas.WidgetSettingsUpdate,
    db: Session = Depends(get_db),
    current_company: models.Company = Depends(get_current_company)
):
    widget_settings = WidgetService(db).update_settings(current_company.id, update)
    return schemas.WidgetSettingsResponse(settings=schemas.WidgetSettingsOut.model_validate(widget_settings))
