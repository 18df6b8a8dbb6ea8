"""
Document Service
Handles document upload, text extraction, language tagging, listing and deletion
"""

import os
import uuid
import math
import logging
from typing import BinaryIO, List, Optional, Tuple
from pathlib import Path

import aiofiles
import PyPDF2
from docx import Document as DocxDocument
from sqlalchemy.orm import Session

from .. import models, schemas
from ..config import settings
from ..exceptions import NotFoundError, ValidationError
from .event_bus import DomainEvent, EventBus, DOCUMENT_UPLOADED, DOCUMENT_DELETED
from .language_service import resolve_language

logger = logging.getLogger(__name__)

DOCUMENT_LANGUAGES = ('am', 'en', 'auto')


class DocumentService:
    """Tenant-scoped document storage backed by the local disk and the database"""

    # Supported MIME types and their extensions
    SUPPORTED_TYPES = {
        'text/plain': ['txt'],
        'application/pdf': ['pdf'],
        'application/vnd.openxmlformats-officedocument.wordprocessingml.document': ['docx'],
        'application/msword': ['doc'],
        'application/rtf': ['rtf'],
        'text/rtf': ['rtf']
    }

    def __init__(
        self,
        db: Session,
        event_bus: Optional[EventBus] = None,
        upload_path: Optional[str] = None,
        max_file_size: Optional[int] = None
    ):
        self.db = db
        self.event_bus = event_bus
        self.upload_path = upload_path or settings.upload_path
        self.max_file_size = max_file_size or settings.max_file_size

    # =============================================================================
    # UPLOAD
    # =============================================================================

    async def upload_document(
        self,
        company_id: str,
        file_data: BinaryIO,
        original_filename: str,
        content_type: str,
        declared_language: Optional[str] = None
    ) -> models.Document:
        """Validate, store, extract and record an uploaded file"""

        content_type = (content_type or '').split(';')[0].strip().lower()
        file_size = self._validate_upload(file_data, original_filename, content_type)
        if declared_language and declared_language not in DOCUMENT_LANGUAGES:
            raise ValidationError(f"Unsupported language: {declared_language}")

        extension = Path(original_filename).suffix.lower()
        stored_filename = f"document-{uuid.uuid4().hex}{extension}"
        os.makedirs(self.upload_path, exist_ok=True)
        file_path = os.path.join(self.upload_path, stored_filename)

        async with aiofiles.open(file_path, 'wb') as f:
            await f.write(file_data.read())

        try:
            content = await self.extract_text(file_path, content_type)
            language = declared_language or resolve_language(content)

            document = models.Document(
                company_id=company_id,
                filename=stored_filename,
                original_name=original_filename,
                file_type=content_type,
                file_size=file_size,
                content=content,
                language=language
            )
            self.db.add(document)
            self.db.commit()
            self.db.refresh(document)
        except Exception:
            self.db.rollback()
            self._remove_file(file_path)
            raise

        logger.info(f"Stored document {document.id} ({file_size} bytes, {document.language}) for company {company_id}")

        await self._publish(company_id, DOCUMENT_UPLOADED, {
            "id": document.id,
            "originalName": document.original_name,
            "language": document.language,
            "createdAt": document.created_at
        })
        return document

    def _validate_upload(self, file_data: BinaryIO, filename: str, content_type: str) -> int:
        """Reject unsupported or oversized files before anything touches the disk"""
        if not filename:
            raise ValidationError("No file uploaded")

        file_data.seek(0, 2)
        file_size = file_data.tell()
        file_data.seek(0)

        if file_size > self.max_file_size:
            raise ValidationError(f"File size exceeds {self.max_file_size // (1024 * 1024)}MB limit")

        if not self.is_supported_file_type(content_type, filename):
            raise ValidationError("Only PDF, DOC, DOCX, TXT, and RTF files are allowed")

        return file_size

    def is_supported_file_type(self, content_type: str, filename: str) -> bool:
        """Both the declared MIME type and the extension must be on the allow-list"""
        extension = Path(filename).suffix.lower().lstrip('.')
        allowed_extensions = [ext for exts in self.SUPPORTED_TYPES.values() for ext in exts]
        return content_type in self.SUPPORTED_TYPES and extension in allowed_extensions

    # =============================================================================
    # CONTENT EXTRACTION
    # =============================================================================

    async def extract_text(self, file_path: str, content_type: str) -> str:
        """Extract plain text; unsupported types and extraction errors give ''"""
        try:
            if content_type == 'application/pdf':
                return self._extract_pdf_content(file_path)
            elif content_type == 'application/vnd.openxmlformats-officedocument.wordprocessingml.document':
                return self._extract_docx_content(file_path)
            elif content_type == 'text/plain':
                async with aiofiles.open(file_path, 'r', encoding='utf-8', errors='ignore') as f:
                    return await f.read()
            else:
                logger.warning(f"No text extraction for content type: {content_type}")
                return ""
        except Exception as e:
            logger.error(f"Text extraction error for {file_path}: {e}")
            return ""

    def _extract_pdf_content(self, file_path: str) -> str:
        text_content = []

        with open(file_path, 'rb') as file:
            pdf_reader = PyPDF2.PdfReader(file)

            for page_num, page in enumerate(pdf_reader.pages):
                try:
                    text = page.extract_text()
                    if text and text.strip():
                        text_content.append(text)
                except Exception as e:
                    logger.warning(f"Error extracting text from page {page_num}: {e}")
                    continue

        return '\n\n'.join(text_content)

    def _extract_docx_content(self, file_path: str) -> str:
        doc = DocxDocument(file_path)
        paragraphs = [p.text.strip() for p in doc.paragraphs if p.text.strip()]
        return '\n\n'.join(paragraphs)

    # =============================================================================
    # QUERIES
    # =============================================================================

    def search_documents(
        self,
        company_id: str,
        search: Optional[str] = None,
        language: Optional[str] = None,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[models.Document], schemas.Pagination]:
        """Search and filter a company's documents, newest first"""
        query = self.db.query(models.Document).filter(models.Document.company_id == company_id)

        if search:
            search_term = f"%{search}%"
            query = query.filter(
                (models.Document.original_name.ilike(search_term)) |
                (models.Document.content.ilike(search_term))
            )

        if language and language != 'all':
            query = query.filter(models.Document.language == language)

        total = query.count()
        documents = query.order_by(models.Document.created_at.desc()).offset((page - 1) * limit).limit(limit).all()

        return documents, schemas.Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if limit else 0
        )

    def get_document(self, company_id: str, document_id: str) -> models.Document:
        document = self.db.query(models.Document).filter(
            models.Document.id == document_id,
            models.Document.company_id == company_id
        ).first()
        if not document:
            raise NotFoundError("Document")
        return document

    # =============================================================================
    # DELETION
    # =============================================================================

    async def delete_document(self, company_id: str, document_id: str):
        document = self.get_document(company_id, document_id)

        self._remove_file(os.path.join(self.upload_path, document.filename))
        self.db.delete(document)
        self.db.commit()

        await self._publish(company_id, DOCUMENT_DELETED, {"id": document_id})

    def _remove_file(self, file_path: str):
        try:
            if os.path.exists(file_path):
                os.remove(file_path)
        except OSError as e:
            logger.error(f"Could not remove file {file_path}: {e}")

    async def _publish(self, company_id: str, name: str, payload: dict):
        if self.event_bus:
            await self.event_bus.publish(DomainEvent(company_id=company_id, name=name, payload=payload))
