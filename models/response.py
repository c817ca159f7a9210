from pydantic import BaseModel
from typing import Any, List


class APIResponse(BaseModel):
    data: Any
    message: str
    status_code: int


class Page(BaseModel):
    items: List[Any]
    total: int
    offset: int
    limit: int
