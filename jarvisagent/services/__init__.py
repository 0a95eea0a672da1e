__all__ = [
    "ChatOrchestrator",
    "Conversation",
    "ConversationStore",
    "ExchangeResult",
    "GoogleOAuthService",
    "IntegrationExecutor",
    "OpenAICompatibleClient",
    "OpenAICompatibleConfig",
    "ToolOutcome",
    "Turn",
    "UserStore",
]

_EXPORTS = {
    "ChatOrchestrator": ".orchestrator",
    "ExchangeResult": ".orchestrator",
    "Conversation": ".conversation",
    "Turn": ".conversation",
    "ConversationStore": ".stores",
    "UserStore": ".stores",
    "GoogleOAuthService": ".google_oauth",
    "IntegrationExecutor": ".executor",
    "ToolOutcome": ".executor",
    "OpenAICompatibleClient": ".llm_client",
    "OpenAICompatibleConfig": ".llm_client",
}


def __getattr__(name: str):
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    from importlib import import_module

    return getattr(import_module(module_name, __name__), name)
