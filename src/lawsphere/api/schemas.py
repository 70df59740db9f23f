"""Pydantic models for the LawSphere API."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ChatRequest(_ApiModel):
    message: str = Field(..., min_length=1, description="User question for the legal assistant")
    session_id: Optional[str] = Field(
        default=None,
        alias="sessionId",
        max_length=128,
        description="Conversation to continue; omitted means the shared default session",
    )


class ChatResponse(_ApiModel):
    reply: str
    create_doc: bool = Field(..., alias="createDoc", description="Hint that drafting a document may help")
    cached: bool = Field(default=False, description="Reply served from the query cache")


class DocumentQuestionsRequest(_ApiModel):
    document_title: str = Field(..., alias="documentTitle", min_length=1)


class QuestionModel(_ApiModel):
    id: str
    question: str
    field_name: str = Field(..., alias="fieldName")
    required: bool


class DocumentQuestionsResponse(_ApiModel):
    document_title: str = Field(..., alias="documentTitle", description="Normalized template title")
    questions: List[QuestionModel]


class FillDocumentRequest(_ApiModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    document_title: str = Field(..., alias="documentTitle", min_length=1)
    responses: Dict[str, str] = Field(..., description="Answers keyed by question fieldName")


class FillDocumentResponse(_ApiModel):
    message: str
    document_id: Optional[str] = Field(default=None, alias="documentId")
    document_title: str = Field(..., alias="documentTitle")
    document_content: str = Field(..., alias="documentContent")
    pdf_base64: str = Field(..., alias="pdfBase64")
    page_count: int = Field(..., alias="pageCount", ge=0)
    review_notes: List[str] = Field(default_factory=list, alias="reviewNotes")


class StoredDocumentResponse(_ApiModel):
    document_id: str = Field(..., alias="documentId")
    title: str
    document_content: str = Field(..., alias="documentContent")
    responses: Dict[str, str]
    page_count: int = Field(..., alias="pageCount", ge=0)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class TemplateCreateRequest(_ApiModel):
    title: str = Field(..., min_length=1, description="Template title as users will request it")
    body: str = Field(default="", description="Template text or notes; stored as-is")


class TemplateSummary(_ApiModel):
    id: str
    title: str
    normalized_title: str = Field(..., alias="normalizedTitle")
    position: int


class TemplateListResponse(_ApiModel):
    total: int
    templates: List[TemplateSummary]
