from fastapi import APIRouter, Depends, HTTPException, Query, status
import logging

from ..auth import get_current_company
from ..dependencies import get_workflow_service
from ..exceptions import LissanError
from .. import models, schemas
from ..services.workflow_service import WorkflowService

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("", response_model=schemas.WorkflowListResponse)
async def list_workflows(
    current_company: models.Company = Depends(get_current_company),
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    """List workflows, newest first, with execution counts"""
    try:
        return schemas.WorkflowListResponse(workflows=workflow_service.list_workflows(current_company.id))
    except Exception as e:
        logger.error(f"Error listing workflows: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch workflows")

@router.post("", response_model=schemas.WorkflowResponse, status_code=status.HTTP_201_CREATED)
async def create_workflow(
    workflow: schemas.WorkflowCreate,
    current_company: models.Company = Depends(get_current_company),
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    try:
        db_workflow = workflow_service.create_workflow(current_company.id, workflow)
        return schemas.WorkflowResponse(workflow=schemas.WorkflowOut.model_validate(db_workflow))
    except Exception as e:
        logger.error(f"Error creating workflow: {e}")
        raise HTTPException(status_code=500, detail="Failed to create workflow")

@router.put("/{workflow_id}", response_model=schemas.WorkflowResponse)
async def update_workflow(
    workflow_id: str,
    workflow_update: schemas.WorkflowUpdate,
    current_company: models.Company = Depends(get_current_company),
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    try:
        db_workflow = workflow_service.update_workflow(current_company.id, workflow_id, workflow_update)
        return schemas.WorkflowResponse(workflow=schemas.WorkflowOut.model_validate(db_workflow))
    except LissanError:
        raise
    except Exception as e:
        logger.error(f"Error updating workflow {workflow_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update workflow")

@router.delete("/{workflow_id}")
async def delete_workflow(
    workflow_id: str,
    current_company: models.Company = Depends(get_current_company),
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    try:
        workflow_service.delete_workflow(current_company.id, workflow_id)
        return {"success": True, "message": "Workflow deleted successfully"}
    except LissanError:
        raise
    except Exception as e:
        logger.error(f"Error deleting workflow {workflow_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete workflow")

# =============================================================================
# EXECUTION
# =============================================================================

@router.post("/{workflow_id}/execute", response_model=schemas.ExecutionResponse)
async def execute_workflow(
    workflow_id: str,
    request: schemas.WorkflowExecuteRequest,
    current_company: models.Company = Depends(get_current_company),
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    """
    Run a workflow once

    The execution record keeps the error text when the run fails; the
    response for a failed run is a 500.
    """
    workflow = workflow_service.get_runnable_workflow(current_company.id, workflow_id)

    try:
        execution = await workflow_service.execute(workflow, request.input)
        return schemas.ExecutionResponse(execution=schemas.ExecutionOut.model_validate(execution))
    except Exception as e:
        logger.error(f"Workflow execution failed for {workflow_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to execute workflow")

@router.get("/{workflow_id}/executions", response_model=schemas.ExecutionListResponse)
async def list_executions(
    workflow_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_company: models.Company = Depends(get_current_company),
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    executions, pagination = workflow_service.list_executions(current_company.id, workflow_id, page=page, limit=limit)
    return schemas.ExecutionListResponse(
        executions=[schemas.ExecutionOut.model_validate(e) for e in executions],
        pagination=pagination
    )
