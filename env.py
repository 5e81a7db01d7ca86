import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


# Environment variables for SafeBite-API
PORT = int(os.getenv("PORT", 8000))

# sqlite by default, any SQLAlchemy url works
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./safebite.db")

# LLM provider settings: "openai" for any chat-completions endpoint, "gemini" for google ai studio
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai").lower()
LLM_API_KEY = os.getenv("LLM_API_KEY", None)
LLM_MODEL_NAME = os.getenv("LLM_MODEL_NAME", "gemini-2.0-flash" if LLM_PROVIDER == "gemini" else "gpt-4")
LLM_API_URL = os.getenv("LLM_API_URL", "https://api.openai.com/v1/chat/completions")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", 0.3))
# Timeout in seconds for a single completion call
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", 30))

# Open Food Facts
PRODUCT_API_URL = os.getenv("PRODUCT_API_URL", "https://world.openfoodfacts.org/api/v0/product")
PRODUCT_LOOKUP_TIMEOUT = float(os.getenv("PRODUCT_LOOKUP_TIMEOUT", 10))
PRODUCT_CACHE_TTL = int(os.getenv("PRODUCT_CACHE_TTL", 300))
PRODUCT_CACHE_SIZE = int(os.getenv("PRODUCT_CACHE_SIZE", 100))
USER_AGENT = os.getenv("USER_AGENT", "SafeBite-API/1.0")

# enrichment protocol
RISK_SCORE_MIN = int(os.getenv("RISK_SCORE_MIN", 1))
RISK_SCORE_MAX = int(os.getenv("RISK_SCORE_MAX", 100))
EXPLANATION_DELIMITER = os.getenv("EXPLANATION_DELIMITER", "###")
# "plain" (delimiter only) or "labeled" ("Name: explanation" entries)
EXPLANATION_FORMAT = os.getenv("EXPLANATION_FORMAT", "plain").lower()

# calendar used for daily stats
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "UTC")

# chat
CHAT_HISTORY_LIMIT = int(os.getenv("CHAT_HISTORY_LIMIT", 50))
CHAT_PROMPT_MAX_CHARS = int(os.getenv("CHAT_PROMPT_MAX_CHARS", 24000))

# langsmith keys optional, the langsmith client reads them from the process environment
LANGSMITH_TRACING = os.getenv("LANGSMITH_TRACING", "false")
LANGSMITH_ENDPOINT = os.getenv("LANGSMITH_ENDPOINT", "https://api.smith.langchain.com")
LANGSMITH_API_KEY = os.getenv("LANGSMITH_API_KEY", None)
LANGSMITH_PROJECT = os.getenv("LANGSMITH_PROJECT", None)
LANGSMITH_ENABLED = str(LANGSMITH_TRACING).lower() == "true"


def check_required_env():
    """Raise if a variable the service cannot run without is missing."""
    required_env_vars = {
        "LLM_API_KEY": LLM_API_KEY,
        "DATABASE_URL": DATABASE_URL,
    }
    for var in required_env_vars.keys():
        if required_env_vars[var] is None:
            raise ValueError(f"Environment variable {var} is not set. Please set it in the .env file.")
    if EXPLANATION_FORMAT not in ("plain", "labeled"):
        raise ValueError(f"EXPLANATION_FORMAT must be 'plain' or 'labeled', got {EXPLANATION_FORMAT!r}")
    if RISK_SCORE_MIN > RISK_SCORE_MAX:
        raise ValueError("RISK_SCORE_MIN must not be greater than RISK_SCORE_MAX")
    if LANGSMITH_ENABLED and LANGSMITH_API_KEY is None:
        raise ValueError("LANGSMITH_TRACING is enabled but LANGSMITH_API_KEY is not set.")


def tracing_summary() -> str:
    if not LANGSMITH_ENABLED:
        return "LangSmith tracing disabled"
    return f"LangSmith tracing enabled for project {LANGSMITH_PROJECT or 'default'} at {LANGSMITH_ENDPOINT}"
