"""
Document Router
Handles document upload, listing, retrieval and deletion
"""

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form, Query, status
from typing import Optional
import logging

from ..auth import get_current_company
from ..dependencies import get_document_service
from ..exceptions import LissanError, ValidationError
from .. import models, schemas
from ..services.document_service import DocumentService

router = APIRouter(prefix="/api/documents", tags=["documents"])
logger = logging.getLogger(__name__)

@router.post("/upload", response_model=schemas.DocumentUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    document: Optional[UploadFile] = File(None),
    language: Optional[str] = Form(None),
    current_company: models.Company = Depends(get_current_company),
    document_service: DocumentService = Depends(get_document_service)
):
    """
    Upload a document

    - document: PDF, DOC, DOCX, TXT or RTF file
    - language: 'am', 'en' or 'auto'; detected from the text when omitted
    """
    if document is None or not document.filename:
        raise ValidationError("No file uploaded")

    try:
        stored = await document_service.upload_document(
            company_id=current_company.id,
            file_data=document.file,
            original_filename=document.filename,
            content_type=document.content_type,
            declared_language=language or None
        )

        return schemas.DocumentUploadResponse(document=schemas.DocumentSummary.model_validate(stored))

    except LissanError:
        raise
    except Exception as e:
        logger.error(f"Document upload error: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload document")

@router.get("", response_model=schemas.DocumentListResponse)
async def list_documents(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None, description="Search in name or content"),
    language: Optional[str] = Query(None, description="Language tag, or 'all'"),
    current_company: models.Company = Depends(get_current_company),
    document_service: DocumentService = Depends(get_document_service)
):
    try:
        documents, pagination = document_service.search_documents(
            company_id=current_company.id,
            search=search,
            language=language,
            page=page,
            limit=limit
        )

        return schemas.DocumentListResponse(
            documents=[schemas.DocumentSummary.model_validate(doc) for doc in documents],
            pagination=pagination
        )

    except Exception as e:
        logger.error(f"Error listing documents: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch documents")

@router.get("/{document_id}", response_model=schemas.DocumentResponse)
async def get_document(
    document_id: str,
    current_company: models.Company = Depends(get_current_company),
    document_service: DocumentService = Depends(get_document_service)
):
    document = document_service.get_document(current_company.id, document_id)
    return schemas.DocumentResponse(document=schemas.DocumentDetail.model_validate(document))

@router.delete("/{document_id}")
async def delete_document(
    document_id: str,
    current_company: models.Company = Depends(get_current_company),
    document_service: DocumentService = Depends(get_document_service)
):
    """Delete a document and its stored file"""
    try:
        await document_service.delete_document(current_company.id, document_id)
        return {"success": True, "message": "Document deleted successfully"}

    except LissanError:
        raise
    except Exception as e:
        logger.error(f"Error deleting document {document_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete document")
