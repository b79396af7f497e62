"""Engine configuration constants.

Centralizes magic numbers and configuration values for the conversation engine.
"""

# Prompt assembly
HISTORY_WINDOW = 10  # Prior turns included in each request
TEMPLATE_PLACEHOLDER = "{{ message }}"
NEW_CHAT_NAME = "New Chat"
SESSION_TITLE_LENGTH = 20  # Characters of the first message used as session name

# Streaming configuration
PERSIST_INTERVAL_SECONDS = 0.5  # Minimum gap between cadence-bound writes
DEFAULT_CHAR_DELAY_MS = 30  # Per-character delay of the typing effect
RESPONSE_TIMEOUT_SECONDS = 30.0  # First-content deadline for regeneration
SLOW_LOADING_HINT = "Loading slowly? Try streaming output~"
CANCELLED_MARKER = "[Cancelled]"

# Message authors
AUTHOR_ME = "me"
AUTHOR_AI = "AI"
AUTHOR_SYSTEM = "System"

# Auto-loop planner
PLANNER_STOP = "STOP"
PLANNER_TEMPERATURE = 0.3
PLANNER_MAX_TOKENS = 100
PLANNER_SYSTEM_PROMPT = (
    "You are a task planner agent.\n"
    "Analyze the previous AI response and generate a short, specific instruction "
    "for the next step to deepen the task or solve remaining issues.\n"
    'If the task appears complete or no further meaningful steps are needed, reply with exactly "STOP".\n'
    'Output ONLY the instruction or "STOP".'
)
DEFAULT_MAX_LOOP_COUNT = 3

# Retrieval configuration
DEFAULT_CHUNK_SIZE = 500
RECALL_LIMIT = 20  # Candidates fetched from the full-text index
RERANK_TOP_K = 5
CONTEXT_SEPARATOR = "\n\n---\n\n"
TRACE_PREVIEW_LENGTH = 80

# Session cache
SESSION_CACHE_SIZE = 5

# Transport
CONNECT_TIMEOUT_SECONDS = 30.0
STREAM_QUEUE_SIZE = 64
SSE_DONE_TOKEN = "[DONE]"

# Default endpoints
OPENAI_BASE_URL = "https://api.openai.com/v1"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
LOCAL_BASE_URL = "http://localhost:11434"
