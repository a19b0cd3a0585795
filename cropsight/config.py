import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# ============================================================================#
# ENVIRONMENT / SERVICES
# ============================================================================#
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")  # Gemini models via OpenRouter
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
APP_REFERER = os.getenv("APP_REFERER", "https://cropsight.app")
APP_TITLE = os.getenv("APP_TITLE", "CropSight Plant Analysis")

# Models per stage
LLM_MODEL_ANALYZER = os.getenv("LLM_MODEL_ANALYZER", "google/gemini-3-flash-preview")
LLM_MODEL_CLASSIFIER = os.getenv("LLM_MODEL_CLASSIFIER", "google/gemini-3-pro-preview")
LLM_MODEL_ADVISOR = os.getenv("LLM_MODEL_ADVISOR", "google/gemini-3-flash-preview")
LLM_MODEL_TIPS = os.getenv("LLM_MODEL_TIPS", "google/gemini-flash-lite-latest")
LLM_MODEL_CHAT = os.getenv("LLM_MODEL_CHAT", "google/gemini-3-flash-preview")

# Timeout configuration for API calls (seconds)
API_TIMEOUT = float(os.getenv("API_TIMEOUT", "90"))
API_CONNECT_TIMEOUT = float(os.getenv("API_CONNECT_TIMEOUT", "15"))
MAX_OUTPUT_TOKENS = int(os.getenv("MAX_OUTPUT_TOKENS", "4096"))

# ============================================================================#
# PIPELINE
# ============================================================================#
PIPELINE_CONFIG = {
    "MAX_CITATIONS": 5,
    "MAX_CLARIFICATION_QUESTIONS": 3,
    "MAX_CLARIFICATION_ROUNDS": 1,
    "ADVICE_ITEM_COUNT": 3,
    "ANALYZER_TEMPERATURE": 0.0,
    "CLASSIFIER_TEMPERATURE": 0.2,
    "ADVISOR_TEMPERATURE": 0.4,
}

# Image limits
MAX_IMAGES = int(os.getenv("MAX_IMAGES", "4"))
MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", str(10 * 1024 * 1024)))  # 10 MB
MAX_IMAGE_DIMENSION = int(os.getenv("MAX_IMAGE_DIMENSION", "1536"))
JPEG_QUALITY = 85

# Agronomist chat
CHAT_TEMPERATURE = 0.7
MAX_CHAT_HISTORY = int(os.getenv("MAX_CHAT_HISTORY", "20"))  # earlier turns sent per reply

# ============================================================================#
# HTTP
# ============================================================================#
ANALYZE_RATE_LIMIT = os.getenv("ANALYZE_RATE_LIMIT", "10/minute")
CHAT_RATE_LIMIT = os.getenv("CHAT_RATE_LIMIT", "30/minute")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
