"""OpenAI-compatible provider."""

import httpx

from chatgate.config.settings import get_settings
from chatgate.providers.base import CompletionProvider, UpstreamError, UpstreamReason, require_text

_STATUS_REASONS = {
    401: UpstreamReason.AUTH,
    403: UpstreamReason.AUTH,
    429: UpstreamReason.QUOTA,
}


class OpenAIProvider(CompletionProvider):
    """Sends chat completion requests to OpenAI-compatible APIs."""

    def __init__(self):
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(60.0, connect=10.0))
        return self._client

    def _build_request(self, prompt: str) -> tuple[str, dict, dict]:
        settings = get_settings()
        url = f"{settings.upstream_base_url.rstrip('/')}/v1/chat/completions"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {settings.upstream_api_key}",
        }
        body = {
            "model": settings.openai_model,
            "messages": [
                {"role": "system", "content": settings.system_prompt},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": settings.max_output_tokens,
            "temperature": settings.temperature,
        }
        return url, headers, body

    async def generate(self, prompt: str) -> str:
        url, headers, body = self._build_request(prompt)

        client = await self._get_client()
        try:
            response = await client.post(url, json=body, headers=headers)
        except httpx.ConnectError:
            raise UpstreamError(UpstreamReason.UNAVAILABLE, "Cannot reach upstream provider")
        except httpx.TimeoutException:
            raise UpstreamError(UpstreamReason.UNAVAILABLE, "Upstream provider timed out")
        except httpx.HTTPError as e:
            raise UpstreamError(UpstreamReason.UNKNOWN, f"Upstream error: {e}")

        if response.status_code != 200:
            if response.status_code in _STATUS_REASONS:
                reason = _STATUS_REASONS[response.status_code]
            elif response.status_code >= 500:
                reason = UpstreamReason.UNAVAILABLE
            else:
                reason = UpstreamReason.UNKNOWN
            raise UpstreamError(
                reason, f"Upstream returned {response.status_code}: {response.text[:500]}"
            )

        return require_text(_extract_content(response.json()))

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def _extract_content(body: dict) -> str:
    """Extract assistant message text from a chat completion response body."""
    choices = body.get("choices", [])
    if not choices:
        return ""
    choice = choices[0]
    if choice.get("finish_reason") == "content_filter":
        raise UpstreamError(UpstreamReason.BLOCKED, "Completion stopped by content filter")
    return choice.get("message", {}).get("content", "") or ""
