"""AWS Bedrock provider using the Converse API."""

import asyncio

from chatgate.config.settings import get_settings
from chatgate.providers.base import CompletionProvider, UpstreamError, UpstreamReason, require_text

_ERROR_REASONS = {
    "AccessDeniedException": UpstreamReason.AUTH,
    "UnrecognizedClientException": UpstreamReason.AUTH,
    "ThrottlingException": UpstreamReason.QUOTA,
    "ServiceQuotaExceededException": UpstreamReason.QUOTA,
    "ModelNotReadyException": UpstreamReason.UNAVAILABLE,
    "ServiceUnavailableException": UpstreamReason.UNAVAILABLE,
    "ModelTimeoutException": UpstreamReason.UNAVAILABLE,
}

_BLOCKED_STOP_REASONS = {"content_filtered", "guardrail_intervened"}


class BedrockProvider(CompletionProvider):
    """Sends requests to AWS Bedrock via the Converse API."""

    def __init__(self):
        self._client = None

    def _get_client(self):
        """Lazy-init boto3 client (avoids import when not needed)."""
        if self._client is None:
            import boto3

            settings = get_settings()
            self._client = boto3.client(
                "bedrock-runtime", region_name=settings.aws_region
            )
        return self._client

    @staticmethod
    def _build_request(prompt: str, model_id: str) -> dict:
        settings = get_settings()
        return {
            "modelId": model_id,
            "system": [{"text": settings.system_prompt}],
            "messages": [{"role": "user", "content": [{"text": prompt}]}],
            "inferenceConfig": {
                "maxTokens": settings.max_output_tokens,
                "temperature": settings.temperature,
            },
        }

    @staticmethod
    def _extract_text(response: dict) -> str:
        if response.get("stopReason") in _BLOCKED_STOP_REASONS:
            raise UpstreamError(UpstreamReason.BLOCKED, f"Bedrock stopped: {response['stopReason']}")
        content_blocks = response.get("output", {}).get("message", {}).get("content", [])
        return "".join(block.get("text", "") for block in content_blocks)

    def _call_converse(self, **kwargs) -> dict:
        """Synchronous Converse API call (run via asyncio.to_thread)."""
        return self._get_client().converse(**kwargs)

    @staticmethod
    def _classify(e: Exception) -> UpstreamError:
        """Map boto3 exceptions to UpstreamError."""
        if isinstance(getattr(e, "response", None), dict):
            error_code = e.response.get("Error", {}).get("Code", "")
        else:
            error_code = type(e).__name__
        reason = _ERROR_REASONS.get(error_code, UpstreamReason.UNKNOWN)
        return UpstreamError(reason, f"Bedrock error ({error_code}): {e}")

    async def generate(self, prompt: str) -> str:
        model_id = get_settings().bedrock_model_id
        if not model_id:
            raise UpstreamError(UpstreamReason.UNKNOWN, "BEDROCK_MODEL_ID is required for the Bedrock provider")

        kwargs = self._build_request(prompt, model_id)
        try:
            response = await asyncio.to_thread(self._call_converse, **kwargs)
        except Exception as e:
            raise self._classify(e) from e

        return require_text(self._extract_text(response))

    async def close(self) -> None:
        # boto3 clients don't need explicit cleanup
        self._client = None
