# qualifier.py
"""Lead qualification module.

This module provides the LeadQualifier class which asks the language
model whether a company can afford a web project, and in which segment
it belongs.
"""

from typing import Optional

from .config import config
from .llm_client import LLMClient
from .logging_utils import get_logger
from .models import QualificationResult, RawLead
from .prompts import build_qualification_prompt
from .response_parser import ParseResult, try_parse_qualification


class LeadQualifier:
    """Qualifier for raw leads.

    Attributes:
        model: Model used for qualification.
        temperature: Sampling temperature, kept low for stable labels.
    """

    DEFAULT_TEMPERATURE = 0.2

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        model: Optional[str] = None,
        temperature: float = DEFAULT_TEMPERATURE,
    ):
        """Initialize the qualifier.

        Args:
            llm_client: Optional LLMClient instance. Created from config
                when not provided.
            model: Model override. Defaults to config.OPENAI_AGENT_MODEL.
            temperature: Sampling temperature.
        """
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

    async def try_qualify(self, lead: RawLead) -> ParseResult[QualificationResult]:
        """Qualify a lead, returning parse failures instead of raising.

        Raises:
            ConfigError: If the API key is missing.
            LLMError: If the completion request fails.
        """
        self.logger.info(
            "Qualifying lead",
            extra={"company_name": lead.company_name, "source": lead.source},
        )

        reply = await self.llm_client.acomplete(
            build_qualification_prompt(lead),
            model=self.model,
            temperature=self.temperature,
        )
        result = try_parse_qualification(reply)

        if result.ok:
            self.logger.info(
                "Lead qualified",
                extra={
                    "company_name": lead.company_name,
                    "score": result.value.score,
                    "verdict": result.value.verdict.value,
                    "segment": result.value.segment.value,
                },
            )
        else:
            self.logger.warning(
                f"Unusable qualification reply: {result.error}",
                extra={"company_name": lead.company_name},
            )

        return result

    async def qualify(self, lead: RawLead) -> QualificationResult:
        """Qualify a lead.

        Raises:
            InvalidModelResponseError: If the reply lacks a mandatory field.
        """
        return (await self.try_qualify(lead)).unwrap()

    def close(self) -> None:
        """Close the LLM client if it was created by this qualifier."""
        if self._owns_client and self._llm_client is not None:
            self._llm_client.close()
            self._llm_client = None

    def __enter__(self) -> "LeadQualifier":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
