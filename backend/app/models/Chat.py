from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ChatMessage(BaseModel):
    role: str
    content: str


# Properties to receive via API on each chat turn.
# History entries stay loosely typed; malformed ones are dropped when building messages.
class ChatRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    system_prompt: Optional[str] = None
    history: Optional[Any] = None
    user_message: Optional[str] = None
    model: Optional[str] = None


class ChatResponse(BaseModel):
    assistant: str
