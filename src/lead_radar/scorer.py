# scorer.py
"""Business scoring with the language model, or the heuristic fallback."""

from typing import Optional

from .config import config
from .heuristics import score_simple
from .llm_client import LLMClient
from .logging_utils import get_logger
from .models import BusinessEntity, ScoringResult, SKIP_SENTINEL
from .prompts import build_scoring_prompt
from .response_parser import parse_scoring


class BusinessScorer:
    """Scores businesses and drafts a first prospecting message.

    A site that exists with no detected issue or opportunity is capped
    below the contact threshold whatever the model answered.

    Attributes:
        threshold: Minimum score for a lead to be contacted.
        use_ai: When False, the deterministic heuristic is used instead.
    """

    DEFAULT_TEMPERATURE = 0.7

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        model: Optional[str] = None,
        threshold: Optional[int] = None,
        use_ai: bool = True,
    ):
        self.logger = get_logger(__name__)

        self._llm_client = llm_client
        self._owns_client = llm_client is None

        self.model = model or config.OPENAI_SCORING_MODEL
        self.threshold = (
            threshold if threshold is not None else config.CONTACT_SCORE_THRESHOLD
        )
        self.use_ai = use_ai

    @property
    def llm_client(self) -> LLMClient:
        """Get or create the LLM client."""
        if self._llm_client is None:
            self._llm_client = LLMClient()
        return self._llm_client

    def ensure_ready(self) -> None:
        """Fail fast when AI scoring is enabled without an API key.

        Raises:
            ConfigError: If the API key is missing.
        """
        if self.use_ai:
            self.llm_client.validate()

    async def score(self, entity: BusinessEntity) -> ScoringResult:
        """Score a business.

        Raises:
            ConfigError: If AI scoring is enabled and the API key is missing.
            LLMError: If the completion request fails.
        """
        if not self.use_ai:
            return score_simple(entity)

        reply = await self.llm_client.acomplete(
            build_scoring_prompt(entity, threshold=self.threshold),
            model=self.model,
            temperature=self.DEFAULT_TEMPERATURE,
        )
        result = self.enforce_no_problem_cap(entity, parse_scoring(reply))

        self.logger.info(
            "Business scored",
            extra={
                "business": entity.name,
                "score": result.score,
                "estimated_size": result.estimated_size.value,
                "skip": result.is_skip,
            },
        )
        return result

    def enforce_no_problem_cap(
        self, entity: BusinessEntity, result: ScoringResult
    ) -> ScoringResult:
        """Cap the score of a healthy existing site below the threshold."""
        signals = entity.website_signals
        if (
            not entity.has_website
            or signals is None
            or not signals.exists
            or signals.has_findings()
            or result.score < self.threshold
        ):
            return result

        self.logger.info(
            "Capping score for site without detected problems",
            extra={"business": entity.name, "model_score": result.score},
        )
        return result.model_copy(
            update={"score": max(0, self.threshold - 1), "message": SKIP_SENTINEL}
        )

    def close(self) -> None:
        if self._owns_client and self._llm_client is not None:
            self._llm_client.close()
            self._llm_client = None
