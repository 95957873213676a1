"""Pydantic request/response models for the OCP explorer API.

These are the HTTP contract, decoupled from the internal domain dataclasses.
The AI proxy request/answer models live in ``ocpexplorer.search.contract``
next to the client that consumes them.
"""

from typing import Literal

from pydantic import BaseModel, Field

from ocpexplorer.search.contract import LocationModel


class ProxyErrorResponse(BaseModel):
    error: str
    message: str | None = None
    suggestion: str | None = None


# ---------------------------------------------------------------------------
# Explorer API
# ---------------------------------------------------------------------------

class SearchRequest(BaseModel):
    """Body of POST /api/v1/search."""

    query: str = Field(..., max_length=2000, examples=["mixed use buildings over 10 storeys"])
    mode: Literal["auto", "local", "ai"] = "auto"
    max_results: int | None = Field(default=None, ge=1, le=50)
    location: LocationModel | None = None


class SuggestionsResponse(BaseModel):
    suggestions: list[str]
