"""
Pydantic request/response models for the HTTP API.

Request fields stay loosely typed (strings, optional ints): validation of
query text, intent and urgency happens in ``SearchQuery.create`` so that
HTTP and MCP callers get the same error messages.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class WebSearchRequest(_CamelModel):
    """Body of ``POST /api/web-search`` and the streaming endpoints."""

    query: str | None = None
    intent: str | None = None
    urgency: str | None = None
    location: str | None = None
    company: str | None = None
    max_results: int | None = Field(default=None, alias="maxResults")
    subscriber_id: str | None = Field(default=None, alias="subscriberId")

    def hints(self) -> dict[str, Any]:
        return {
            "intent": self.intent,
            "urgency": self.urgency,
            "location": self.location,
            "company": self.company,
            "max_results": self.max_results,
        }


class JobSearchRequest(_CamelModel):
    query: str | None = None
    location: str | None = None
    urgency: str | None = None
    max_results: int | None = Field(default=None, alias="maxResults")


class CompanyResearchRequest(_CamelModel):
    company: str | None = None
    focus: str = "overview"
    urgency: str | None = None
    max_results: int | None = Field(default=None, alias="maxResults")


class QuestMetadata(_CamelModel):
    api_version: str = Field(alias="apiVersion")
    timestamp: str
    processing_time: int = Field(alias="processingTime")
    search_id: str = Field(alias="searchId")


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str
    type: str
    category: str | None = None
    suggestion: str | None = None


class StreamCancelResponse(_CamelModel):
    stream_id: str = Field(alias="streamId")
    cancelled: bool
