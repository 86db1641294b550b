"""
Search API Schemas

Request/response models for the semantic search endpoint. Field names follow
the JSON contract (camelCase) through aliases; Python code uses snake_case.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .decision_record import RecordKind, Category


class SearchRequest(BaseModel):
    """POST /api/semantic-search body"""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    query: str = Field(..., min_length=1)
    workspace_id: str = Field(..., min_length=1, alias="workspace_id")
    kind: Optional[RecordKind] = None
    category: Optional[Category] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = Field(default=10, ge=1, le=100)
    min_score: float = Field(default=0.5, ge=0.0, le=1.0)
    conversational: bool = True


class CategorizedPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    highly_relevant: List[Dict[str, Any]] = Field(default_factory=list)
    relevant: List[Dict[str, Any]] = Field(default_factory=list)
    somewhat_relevant: List[Dict[str, Any]] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """POST /api/semantic-search response"""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    success: bool = True
    query: str
    response: Optional[str] = None
    decisions: List[Dict[str, Any]] = Field(default_factory=list)
    categorized: CategorizedPayload = Field(default_factory=CategorizedPayload)
    search_method: str
    results_count: int = 0
