"""Search schemas."""

from datetime import datetime

from pydantic import BaseModel

from productbazar.models.search import SearchType


class SearchHistoryResponse(BaseModel):
    id: int
    query: str
    type: SearchType
    count: int
    last_searched_at: datetime

    model_config = {"from_attributes": True}


class SearchSuggestion(BaseModel):
    text: str
    type: str
