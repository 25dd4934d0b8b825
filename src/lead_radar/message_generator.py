# message_generator.py
"""Prospecting message generation per audience segment."""

from typing import Optional

from .config import config
from .llm_client import LLMClient
from .logging_utils import get_logger
from .models import GeneratedMessage, MessageInput
from .prompts import build_message_prompt
from .response_parser import parse_message


class MessageGenerator:
    """Generates a first-contact message for a lead or a freelance project.

    A ``SKIP`` reply is returned as-is; callers decide what to do with it.
    """

    DEFAULT_TEMPERATURE = 0.4

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        model: Optional[str] = None,
        temperature: float = DEFAULT_TEMPERATURE,
    ):
        self.logger = get_logger(__name__)

        self._llm_client = llm_client
        self._owns_client = llm_client is None

        self.model = model or config.OPENAI_AGENT_MODEL
        self.temperature = temperature

    @property
    def llm_client(self) -> LLMClient:
        """Get or create the LLM client."""
        if self._llm_client is None:
            self._llm_client = LLMClient()
        return self._llm_client

    def ensure_ready(self) -> None:
        """Raise ConfigError when the API key is missing."""
        self.llm_client.validate()

    async def generate(self, data: MessageInput) -> GeneratedMessage:
        """Generate a message for the input's segment.

        Raises:
            ConfigError: If the API key is missing.
            LLMError: If the completion request fails.
        """
        reply = await self.llm_client.acomplete(
            build_message_prompt(data),
            model=self.model,
            temperature=self.temperature,
        )
        message = parse_message(reply)

        self.logger.info(
            "Message generated",
            extra={
                "company_name": data.company_name,
                "segment": data.segment.value,
                "skip": message.is_skip,
                "score": message.score,
            },
        )
        return message

    def close(self) -> None:
        if self._owns_client and self._llm_client is not None:
            self._llm_client.close()
            self._llm_client = None
