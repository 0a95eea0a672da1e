from typing import Any

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=6000)
    conversation_id: str | None = Field(default=None, max_length=64)


class ToolCallView(BaseModel):
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    success: bool | None = None
    error: str | None = None


class TurnView(BaseModel):
    role: str
    content: str
    tool_calls: list[ToolCallView] = Field(default_factory=list)
    tool_call_id: str | None = None
    created_at: str


class ChatResponse(BaseModel):
    conversation_id: str
    message: TurnView
    tool_calls: list[ToolCallView] = Field(default_factory=list)
    reauth_required: bool = False
    llm_failed: bool = False


class CreateConversationRequest(BaseModel):
    title: str | None = Field(default=None, max_length=200)


class ConversationView(BaseModel):
    id: str
    title: str
    created_at: str
    turn_count: int


class AuthUrlResponse(BaseModel):
    auth_url: str


class UserView(BaseModel):
    id: str
    email: str
    name: str | None = None
    google_connected: bool


class SessionResponse(BaseModel):
    session_token: str
    user: UserView
