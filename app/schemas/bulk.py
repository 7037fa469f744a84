from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class BulkResult(BaseModel):
    index: int
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    code: Optional[str] = None
    details: Optional[List[Dict[str, Any]]] = None


class BulkRequest(BaseModel):
    # Items are validated one by one so a malformed item fails alone.
    items: List[Any]
