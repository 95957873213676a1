"""Pydantic models for the AI proxy wire contract.

Shared by AIProxyClient (which sends the request and validates the answer)
and the proxy endpoint (which receives the request and returns the answer).
"""

from pydantic import BaseModel, ConfigDict, Field


class LocationModel(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class AIProxyRequest(BaseModel):
    """Body of POST /api/v1/ai/search."""

    question: str = Field(..., min_length=3, max_length=500)
    context: dict = Field(default_factory=dict)
    location: LocationModel | None = None
    max_results: int | None = Field(default=None, alias="maxResults")

    model_config = ConfigDict(populate_by_name=True)


class AIProxyResponse(BaseModel):
    """Successful AI proxy answer."""

    answer: str
    confidence: float | None = None
    mentioned_areas: list[str] = Field(default_factory=list, alias="mentionedAreas")
    mentioned_policies: list[str] = Field(default_factory=list, alias="mentionedPolicies")
    citations: list[str] = Field(default_factory=list)
    timestamp: float | None = None
    query: str | None = None

    model_config = ConfigDict(populate_by_name=True)
