"""Provider factory functions for CLI.

Centralizes creation of stores, gateways and provider configs from environment
variables. Hides configuration details from command implementations.
"""

import os
from pathlib import Path

from rich.console import Console

from ..config import GEMINI_BASE_URL, LOCAL_BASE_URL, OPENAI_BASE_URL
from ..llm.models import GeminiConfig, LocalConfig, NetworkProxy, OpenAIConfig
from ..persistence import MessagePersistenceGateway, create_persistence_gateway
from ..storage import KnowledgeStore, create_knowledge_store

# Default console for output
_console = Console()

AnyProvider = OpenAIConfig | GeminiConfig | LocalConfig

DEFAULT_DATA_DIR = Path.home() / ".pylogos"


def get_knowledge_store() -> KnowledgeStore:
    """Create the knowledge store from environment variables.

    Environment variables:
        PYLOGOS_KNOWLEDGE_DB: SQLite file (default: ~/.pylogos/knowledge.db)
    """
    path = os.getenv("PYLOGOS_KNOWLEDGE_DB", str(DEFAULT_DATA_DIR / "knowledge.db"))
    return create_knowledge_store("sqlite", path=path)


def get_gateway() -> MessagePersistenceGateway:
    """Create the message gateway from environment variables.

    Environment variables:
        PYLOGOS_MEMORY_DB: SQLite file (default: ~/.pylogos/memory.db);
            set to 'none' to keep history in memory only
    """
    path = os.getenv("PYLOGOS_MEMORY_DB", str(DEFAULT_DATA_DIR / "memory.db"))
    if path.lower() == "none":
        return create_persistence_gateway("memory")
    return create_persistence_gateway("sqlite", path=path)


def get_proxy() -> NetworkProxy | None:
    """Proxy from HTTP_PROXY_HOST / HTTP_PROXY_PORT, if both are set."""
    host = os.getenv("HTTP_PROXY_HOST")
    port = os.getenv("HTTP_PROXY_PORT")
    if not host or not port:
        return None
    return NetworkProxy(host=host, port=int(port))


def get_provider(kind: str, console: Console | None = None) -> AnyProvider | None:
    """Build one provider config from environment variables.

    Args:
        kind: 'openai', 'gemini' or 'local'
        console: Optional Rich console for output

    Returns:
        Provider config, or None if its API key is not set

    Raises:
        ValueError: If kind is not supported

    Environment variables:
        OPENAI_API_KEY, OPENAI_BASE_URL, OPENAI_CHAT_MODEL (default: gpt-4o-mini)
        GEMINI_API_KEY, GEMINI_BASE_URL, GEMINI_MODEL (default: gemini-2.5-flash)
        LOCAL_BASE_URL (default: http://localhost:11434), LOCAL_MODEL (default: llama3)
    """
    con = console or _console
    kind = kind.lower()
    proxy = get_proxy()

    if kind == "openai":
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            con.print("[yellow]Warning: OPENAI_API_KEY not set, OpenAI disabled[/yellow]")
            return None
        return OpenAIConfig(
            id="openai",
            api_key=api_key,
            base_url=os.getenv("OPENAI_BASE_URL", OPENAI_BASE_URL),
            models=(os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini"),),
            proxy=proxy
        )

    elif kind == "gemini":
        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            con.print("[yellow]Warning: GEMINI_API_KEY not set, Gemini disabled[/yellow]")
            return None
        return GeminiConfig(
            id="gemini",
            api_key=api_key,
            base_url=os.getenv("GEMINI_BASE_URL", GEMINI_BASE_URL),
            models=(os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),),
            proxy=proxy
        )

    elif kind == "local":
        return LocalConfig(
            id="local",
            base_url=os.getenv("LOCAL_BASE_URL", LOCAL_BASE_URL),
            models=(os.getenv("LOCAL_MODEL", "llama3"),)
        )

    raise ValueError(f"Unsupported provider: {kind}. Supported providers: openai, gemini, local")


def get_providers(console: Console | None = None) -> tuple[AnyProvider | None, AnyProvider | None]:
    """Primary and fallback providers.

    Environment variables:
        LLM_PROVIDER: Primary provider (default: openai)
        FALLBACK_PROVIDER: Fallback provider (default: local; 'none' disables)
    """
    primary_kind = os.getenv("LLM_PROVIDER", "openai").lower()
    fallback_kind = os.getenv("FALLBACK_PROVIDER", "local").lower()

    primary = get_provider(primary_kind, console)
    fallback = None
    if fallback_kind not in ("", "none") and fallback_kind != primary_kind:
        fallback = get_provider(fallback_kind, console)
    return primary, fallback
