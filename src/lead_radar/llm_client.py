# llm_client.py
"""OpenAI chat completions REST client for scoring, qualification and messaging."""

import asyncio
import functools
from typing import Any, Dict, List, Optional

import requests

from .config import ConfigError, config
from .logging_utils import get_logger


class LLMError(Exception):
    """Raised when a completion request fails or returns no choices."""

    pass


class LLMClient:
    """OpenAI REST client wrapper for Lead Radar.

    Calls the chat completions endpoint directly via requests. A request
    is attempted once; timeouts and HTTP errors surface as LLMError.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        default_model: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        """Initialize the LLM client.

        Args:
            api_key: OpenAI API key. Defaults to config value.
            base_url: API base URL. Defaults to config value.
            default_model: Model used when a call does not name one.
            timeout: Request timeout in seconds. Defaults to config value.
        """
        self.logger = get_logger(__name__)

        self.base_url = (base_url or config.OPENAI_BASE_URL).rstrip("/")
        self.default_model = default_model or config.OPENAI_SCORING_MODEL
        self.timeout = timeout if timeout is not None else config.LLM_TIMEOUT_SECONDS
        self._api_key = api_key or config.OPENAI_API_KEY

        # Lazy-initialized session
        self._session: Optional[requests.Session] = None

    def _get_session(self) -> requests.Session:
        """Get or create the requests session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def validate(self) -> None:
        """Check that the client can authenticate.

        Raises:
            ConfigError: If no API key is configured.
        """
        if not self._api_key:
            raise ConfigError("OPENAI_API_KEY is required for AI scoring")

    def _get_auth_headers(self) -> Dict[str, str]:
        """Build request headers.

        Raises:
            ConfigError: If no API key is configured.
        """
        self.validate()

        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    def _make_request(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Make a chat completion request.

        Raises:
            ConfigError: If no API key is configured.
            LLMError: On timeout, HTTP error or undecodable body.
        """
        url = f"{self.base_url}/chat/completions"
        headers = self._get_auth_headers()

        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens

        self.logger.debug(
            "Making LLM API request",
            extra={"model": model, "message_count": len(messages)},
        )

        try:
            response = self._get_session().post(
                url,
                headers=headers,
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            result = response.json()

        except requests.exceptions.Timeout as e:
            self.logger.error(
                f"LLM API request timed out after {self.timeout}s",
                extra={"model": model},
            )
            raise LLMError(f"Completion timed out after {self.timeout}s") from e

        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            self.logger.error(
                f"LLM API request failed: {e}",
                extra={
                    "status_code": status_code,
                    "response_text": (
                        e.response.text[:500] if e.response is not None else None
                    ),
                },
            )
            raise LLMError(f"Completion request failed ({status_code})") from e

        except (requests.exceptions.RequestException, ValueError) as e:
            self.logger.error(f"LLM API request error: {e}")
            raise LLMError(f"Completion request error: {e}") from e

        self.logger.debug(
            "LLM API request completed",
            extra={"usage": result.get("usage", {})},
        )
        return result

    def complete(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send a single user prompt and return the reply text.

        Args:
            prompt: The prompt text.
            model: Model name. Defaults to the client's default model.
            temperature: Sampling temperature.
            max_tokens: Optional completion length cap.

        Returns:
            The assistant's reply.

        Raises:
            ConfigError: If no API key is configured.
            LLMError: If the request fails or returns no choices.
        """
        model = model or self.default_model
        result = self._make_request(
            messages=[{"role": "user", "content": prompt}],
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        choices = result.get("choices") or []
        if not choices:
            raise LLMError("No choices in API response")

        return (choices[0].get("message") or {}).get("content") or ""

    async def acomplete(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Run :meth:`complete` in the default executor, bounded by the timeout."""
        loop = asyncio.get_running_loop()
        call = functools.partial(
            self.complete,
            prompt,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, call), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise LLMError(f"Completion timed out after {self.timeout}s") from e

    def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self) -> "LLMClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
