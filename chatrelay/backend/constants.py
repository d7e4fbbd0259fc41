APP_NAME = "Chat Relay"
APP_VERSION = "1.0.0"
DEFAULT_CORS_ALLOW_ORIGINS = [
	"http://localhost",
	"http://127.0.0.1",
	"http://localhost:3000",
]
DEFAULT_TRUSTED_HOSTS = [
	"127.0.0.1",
	"localhost",
	"testserver",
]

BACKEND_OPENAI = "openai"
BACKEND_N8N = "n8n"
DEFAULT_BACKEND = BACKEND_N8N

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_SYSTEM_PROMPT = (
	"You are a helpful AI assistant. Be concise, accurate, and friendly in your responses."
)
DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7
DEFAULT_TOP_P = 1.0
DEFAULT_FREQUENCY_PENALTY = 0.0
DEFAULT_PRESENCE_PENALTY = 0.0
DEFAULT_TIMEOUT_S = 60.0
DEFAULT_N8N_WEBHOOK_URL = "http://localhost:5678/webhook/cd93bdd6-4af7-41ff-80d7-12538cb8ea9f"

SUPPORTED_MODELS = (
	"gpt-4o",
	"gpt-4o-mini",
	"gpt-4-turbo",
	"gpt-4",
	"gpt-3.5-turbo",
)

USER_AGENT = "AI-Chatbot/1.0"

SSE_DATA_PREFIX = "data: "
SSE_DONE_TOKEN = "[DONE]"
SSE_HEADERS = {
	"Cache-Control": "no-cache",
	"Connection": "keep-alive",
	"X-Accel-Buffering": "no",
}
