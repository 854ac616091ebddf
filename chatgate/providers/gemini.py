"""Google Gemini provider using the google-generativeai SDK."""

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import HarmBlockThreshold, HarmCategory

from chatgate.config.settings import get_settings
from chatgate.providers.base import CompletionProvider, UpstreamError, UpstreamReason, require_text

SAFETY_CATEGORIES = (
    HarmCategory.HARM_CATEGORY_HARASSMENT,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
)


def safety_settings(threshold: str) -> dict | None:
    """One threshold for every harm category, or None for the SDK defaults."""
    if not threshold:
        return None
    try:
        level = HarmBlockThreshold[threshold.strip().upper()]
    except KeyError:
        raise UpstreamError(UpstreamReason.UNKNOWN, f"Unknown GEMINI_SAFETY_THRESHOLD: {threshold}")
    return {category: level for category in SAFETY_CATEGORIES}


class GeminiProvider(CompletionProvider):
    """Generates replies with a Gemini model.

    The SDK is configured once per instance, on first use, so importing the
    module never needs an API key.
    """

    def __init__(self):
        self._model = None

    def _get_model(self):
        if self._model is None:
            settings = get_settings()
            if not settings.gemini_api_key:
                raise UpstreamError(UpstreamReason.AUTH, "GEMINI_API_KEY is not set")
            genai.configure(api_key=settings.gemini_api_key)
            self._model = genai.GenerativeModel(
                settings.gemini_model,
                system_instruction=settings.system_prompt,
                safety_settings=safety_settings(settings.gemini_safety_threshold),
                generation_config=genai.GenerationConfig(
                    max_output_tokens=settings.max_output_tokens,
                    temperature=settings.temperature,
                ),
            )
        return self._model

    async def generate(self, prompt: str) -> str:
        model = self._get_model()
        try:
            response = await model.generate_content_async(prompt)
            text = response.text
        except UpstreamError:
            raise
        except Exception as e:
            raise _classify(e) from e

        return require_text(text)

    async def close(self) -> None:
        self._model = None


def _classify(e: Exception) -> UpstreamError:
    """Map SDK exceptions to UpstreamError."""
    detail = f"Gemini error ({type(e).__name__}): {e}"

    if isinstance(e, (google_exceptions.PermissionDenied, google_exceptions.Unauthenticated)):
        return UpstreamError(UpstreamReason.AUTH, detail)
    if isinstance(e, google_exceptions.ResourceExhausted):
        return UpstreamError(UpstreamReason.QUOTA, detail)
    if isinstance(e, (google_exceptions.ServiceUnavailable, google_exceptions.DeadlineExceeded,
                      google_exceptions.InternalServerError)):
        return UpstreamError(UpstreamReason.UNAVAILABLE, detail)
    if isinstance(e, (genai.types.BlockedPromptException, genai.types.StopCandidateException)):
        return UpstreamError(UpstreamReason.BLOCKED, detail)

    # The SDK reports a bad key as InvalidArgument and a blocked reply as a
    # ValueError from response.text, so fall back to the message.
    message = str(e).lower()
    if "api key not valid" in message or "permission denied" in message:
        return UpstreamError(UpstreamReason.AUTH, detail)
    if "quota" in message or "rate limit" in message:
        return UpstreamError(UpstreamReason.QUOTA, detail)
    if "safety" in message or "blocked" in message or "content policy" in message:
        return UpstreamError(UpstreamReason.BLOCKED, detail)
    return UpstreamError(UpstreamReason.UNKNOWN, detail)
