from typing import Optional

from pydantic import BaseModel


class ActorContext(BaseModel):
    person_id: Optional[str] = None
    name: Optional[str] = None
