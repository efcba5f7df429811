"""Azure OpenAI service for chat completions."""
import logging
from typing import Optional

from openai import AzureOpenAI, OpenAIError

from app.config import settings
from app.errors import LLMServiceError

logger = logging.getLogger(__name__)


class AzureOpenAIService:
    """Service for interacting with Azure OpenAI.

    Every pipeline stage goes through :meth:`complete` with its own temperature
    and timeout, so classification, scoring and reformulation can stay
    near-deterministic while generation is allowed some variety.
    """

    def __init__(self, client: Optional[AzureOpenAI] = None):
        self._client = client
        self.deployment_name = settings.azure_openai_deployment_name

    @property
    def client(self) -> AzureOpenAI:
        """Lazily build the client so the app can start without credentials."""
        if self._client is None:
            # Ensure endpoint ends with / for proper URL construction
            endpoint = settings.azure_openai_endpoint
            if not endpoint.endswith('/'):
                endpoint = endpoint + '/'
            self._client = AzureOpenAI(
                api_key=settings.azure_openai_api_key,
                api_version=settings.azure_openai_api_version,
                azure_endpoint=endpoint,
                # Stage timeouts bound the whole call; SDK retries would multiply them
                max_retries=settings.azure_openai_max_retries,
            )
        return self._client

    def complete(
        self,
        prompt: str,
        temperature: float = 0.4,
        structured_output: bool = False,
        timeout: Optional[float] = None,
        max_tokens: int = 1024,
        system_prompt: Optional[str] = None,
    ) -> str:
        """
        Get a single completion for the prompt.

        Args:
            prompt: User-role prompt text
            temperature: Sampling temperature (0.0 to 1.0)
            structured_output: Request a JSON object response
            timeout: Per-request timeout in seconds
            max_tokens: Maximum tokens in response
            system_prompt: Optional system message placed before the prompt

        Returns:
            Response text, stripped; empty string when the model returned nothing

        Raises:
            LLMServiceError: on any transport, timeout, or API failure
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {
            "model": self.deployment_name,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if structured_output:
            kwargs["response_format"] = {"type": "json_object"}
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = self.client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            raise LLMServiceError(f"Error calling Azure OpenAI: {str(e)}") from e

        if not response.choices:
            logger.warning("Azure OpenAI returned no choices")
            return ""
        return (response.choices[0].message.content or "").strip()
