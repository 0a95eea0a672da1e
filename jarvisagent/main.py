from __future__ import annotations

import logging

from fastapi import FastAPI, Header, HTTPException

from jarvisagent.config import settings
from jarvisagent.models import (
    AuthUrlResponse,
    ChatRequest,
    ChatResponse,
    ConversationView,
    CreateConversationRequest,
    SessionResponse,
    ToolCallView,
    TurnView,
    UserView,
)
from jarvisagent.services.conversation import Conversation, Turn
from jarvisagent.services.executor import IntegrationExecutor
from jarvisagent.services.google_oauth import GoogleOAuthService
from jarvisagent.services.llm_client import OpenAICompatibleClient, OpenAICompatibleConfig
from jarvisagent.services.orchestrator import ChatOrchestrator, ExchangeResult
from jarvisagent.services.stores import ConversationStore, UserAccount, UserStore
from jarvisagent.tools import CalendarClient, GmailClient, build_default_registry

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Jarvis Agent API", version="0.1.0")


def _build_orchestrator(executor: IntegrationExecutor) -> ChatOrchestrator | None:
    key = (settings.llm_api_key or "").strip()
    if not key:
        logger.warning("No LLM API key configured; chat is disabled.")
        return None
    llm = OpenAICompatibleClient(
        OpenAICompatibleConfig(
            provider=settings.llm_provider,
            model=settings.llm_model,
            api_key=key,
            api_base_url=settings.llm_api_base_url,
            timeout_seconds=settings.llm_timeout_seconds,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )
    )
    return ChatOrchestrator(
        llm=llm,
        executor=executor,
        registry=registry,
        auth=google_oauth,
        max_history_turns=settings.history_max_turns,
    )


registry = build_default_registry()
users = UserStore()
conversations = ConversationStore()
google_oauth = GoogleOAuthService(
    client_id=settings.google_client_id,
    client_secret=settings.google_client_secret,
    redirect_uri=settings.google_redirect_uri,
    users=users,
    timeout_seconds=settings.google_oauth_timeout_seconds,
)
executor = IntegrationExecutor(
    registry=registry,
    mail=GmailClient(timeout_seconds=settings.google_api_timeout_seconds),
    calendar=CalendarClient(timeout_seconds=settings.google_api_timeout_seconds),
    default_max_results=settings.gmail_default_max_results,
)
orchestrator = _build_orchestrator(executor)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/auth/google", response_model=AuthUrlResponse)
def google_auth_url() -> AuthUrlResponse:
    if not google_oauth.is_configured():
        raise HTTPException(
            status_code=503,
            detail=(
                "Google OAuth is not configured. "
                "Set GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, and GOOGLE_REDIRECT_URI."
            ),
        )
    return AuthUrlResponse(auth_url=google_oauth.build_auth_url())


@app.get("/api/auth/callback", response_model=SessionResponse)
def google_callback(code: str | None = None, error: str | None = None) -> SessionResponse:
    if error:
        raise HTTPException(status_code=400, detail=f"Google sign-in failed: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code.")
    if not google_oauth.is_configured():
        raise HTTPException(status_code=503, detail="Google OAuth is not configured.")
    try:
        user = google_oauth.connect_account(code)
    except Exception as exc:
        logger.warning("Google sign-in failed: %s", exc)
        raise HTTPException(status_code=400, detail="Authentication failed.") from exc
    return SessionResponse(session_token=users.create_session(user.id), user=_user_view(user))


@app.get("/api/auth/me", response_model=UserView)
def auth_me(authorization: str | None = Header(default=None)) -> UserView:
    return _user_view(_require_user(authorization))


@app.post("/api/auth/logout")
def auth_logout(authorization: str | None = Header(default=None)) -> dict[str, object]:
    return {"logged_out": users.end_session(_bearer_token(authorization))}


@app.post("/api/auth/google/disconnect")
def google_disconnect(authorization: str | None = Header(default=None)) -> dict[str, object]:
    user = _require_user(authorization)
    users.update_credentials(user.id, None)
    return {"provider": "google", "disconnected": True}


@app.get("/api/conversations", response_model=list[ConversationView])
def list_conversations(
    authorization: str | None = Header(default=None),
) -> list[ConversationView]:
    user = _require_user(authorization)
    return [_conversation_view(c) for c in conversations.list_for_user(user.id)]


@app.post("/api/conversations", response_model=ConversationView)
def create_conversation(
    payload: CreateConversationRequest | None = None,
    authorization: str | None = Header(default=None),
) -> ConversationView:
    user = _require_user(authorization)
    title = (payload.title if payload else None) or "New Conversation"
    return _conversation_view(conversations.create(user_id=user.id, title=title.strip()))


@app.get("/api/conversations/{conversation_id}/messages", response_model=list[TurnView])
def conversation_messages(
    conversation_id: str,
    authorization: str | None = Header(default=None),
) -> list[TurnView]:
    user = _require_user(authorization)
    conversation = conversations.get_for_user(conversation_id, user.id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found.")
    with conversations.lock(conversation_id):
        turns = conversation.turns
    return [_turn_view(turn) for turn in turns]


@app.post("/api/chat", response_model=ChatResponse)
def chat_route(
    payload: ChatRequest,
    authorization: str | None = Header(default=None),
) -> ChatResponse:
    user = _require_user(authorization)
    if orchestrator is None:
        raise HTTPException(
            status_code=503,
            detail="LLM API key missing. Set JARVIS_LLM_API_KEY or MISTRAL_API_KEY.",
        )
    text = payload.message.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Message text is required.")

    if payload.conversation_id:
        conversation = conversations.get_for_user(payload.conversation_id, user.id)
        if conversation is None:
            raise HTTPException(status_code=404, detail="Conversation not found.")
    else:
        conversation = conversations.create(user_id=user.id)

    with conversations.lock(conversation.conversation_id):
        if conversation.title == "New Conversation":
            conversation.title = text[:60]
        result = orchestrator.handle_user_message(conversation, text, user_id=user.id)
    return ChatResponse(
        conversation_id=conversation.conversation_id,
        message=_turn_view(result.turn),
        tool_calls=_tool_call_views(result) if settings.expose_tool_calls else [],
        reauth_required=result.reauth_required,
        llm_failed=result.llm_failed,
    )


def _bearer_token(authorization: str | None) -> str | None:
    raw = (authorization or "").strip()
    if not raw.lower().startswith("bearer "):
        return None
    return raw[7:].strip() or None


def _require_user(authorization: str | None) -> UserAccount:
    user = users.resolve_session(_bearer_token(authorization))
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated.")
    return user


def _user_view(user: UserAccount) -> UserView:
    return UserView(
        id=user.id,
        email=user.email,
        name=user.name,
        google_connected=user.google_connected,
    )


def _conversation_view(conversation: Conversation) -> ConversationView:
    return ConversationView(
        id=conversation.conversation_id,
        title=conversation.title,
        created_at=conversation.created_at.isoformat(),
        turn_count=len(conversation),
    )


def _turn_view(turn: Turn) -> TurnView:
    return TurnView(
        role=turn.role,
        content=turn.content,
        tool_calls=[
            ToolCallView(id=call.id, name=call.name, arguments=call.arguments)
            for call in turn.tool_calls
        ],
        tool_call_id=turn.tool_call_id,
        created_at=turn.created_at.isoformat(),
    )


def _tool_call_views(result: ExchangeResult) -> list[ToolCallView]:
    return [
        ToolCallView(
            id=outcome.tool_call_id,
            name=outcome.name,
            success=outcome.success,
            error=outcome.error,
        )
        for outcome in result.tool_outcomes
    ]
