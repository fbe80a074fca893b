"""HTTP clients for the external speech-to-text and text-generation services.

WHY: The pipeline talks to two third-party services. Keeping every
request, header and error mapping in this package means the rest of the
code only deals with plain dicts and strings.

HOW: Both clients wrap httpx.AsyncClient and are async context managers.

RULES:
- All outbound HTTP goes through these clients (no direct httpx usage elsewhere)
- Authentication keys come from config, never from callers' literals
"""

from clearnotes.api.elevenlabs import ElevenLabsAPIError, ElevenLabsClient
from clearnotes.api.gemini import GeminiAPIError, GeminiClient, GeminiResponseError

__all__ = [
    "ElevenLabsAPIError",
    "ElevenLabsClient",
    "GeminiAPIError",
    "GeminiClient",
    "GeminiResponseError",
]
