"""Project-wide constants for the Gemini relay adaptor"""  # noqa: D415

# ==============================================================================
# Channel identity
# ==============================================================================

CHANNEL_NAME = "google gemini"

MODEL_LIST = [
    "gemini-1.5-pro",
    "gemini-1.5-flash",
    "gemini-2.0-flash",
    "gemini-2.0-flash-lite",
    "gemini-2.5-pro",
    "gemini-2.5-flash",
    "gemini-2.5-flash-thinking",
    "gemini-2.5-flash-nothinking",
    "gemini-2.5-flash-lite",
    "text-embedding-004",
    "gemini-embedding-001",
    "imagen-3.0-generate-002",
]

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
DEFAULT_API_VERSION = "v1beta"

# ==============================================================================
# Model families (matched by prefix on the canonical model id)
# ==============================================================================

IMAGEN_PREFIX = "imagen"
EMBEDDING_PREFIXES = ("text-embedding", "embedding", "gemini-embedding")

# Only this model accepts an explicit output dimensionality.
DIMENSIONED_EMBEDDING_MODEL = "text-embedding-004"

# ==============================================================================
# Image generation
# ==============================================================================

# Approximate vendor accounting: every generated image is billed as a fixed
# number of prompt tokens.
IMAGEN_TOKENS_PER_IMAGE = 258

DEFAULT_ASPECT_RATIO = "1:1"
ASPECT_RATIOS = {
    "1024x1024": "1:1",
    "1024x1792": "9:16",
    "1792x1024": "16:9",
}
PERSON_GENERATION_POLICY = "allow_adult"

# ==============================================================================
# Thinking
# ==============================================================================

DEFAULT_THINKING_BUDGET_PERCENTAGE = 0.6
