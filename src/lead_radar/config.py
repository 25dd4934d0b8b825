# config.py
import logging
import os
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


DEFAULT_ZONES = (
    "Lyon 1, France;Lyon 2, France;Lyon 3, France;"
    "Lyon 6, France;Lyon 7, France;Villeurbanne, France"
)

DEFAULT_KEYWORDS = "restaurant,boutique,magasin,salon de coiffure,cabinet avocat"

DEFAULT_FEED_SKILLS = "saas,site vitrine,application mobile,développement web"

# Signature lines separated by "|"
DEFAULT_SIGNATURE = "Votre développeur web freelance"


class LeadRadarConfig:
    """Lead Radar configuration class that loads settings from environment variables."""

    def __init__(self):
        """Initialize the Lead Radar configuration with environment variables."""
        self.logger = logging.getLogger(__name__)

        # Application environment
        self.APP_ENV = self._get_required("APP_ENV", "dev")
        self.LOG_LEVEL = self._get_optional("LOG_LEVEL", "INFO")

        # OpenAI settings
        self.OPENAI_API_KEY = self._get_optional("OPENAI_API_KEY")
        self.OPENAI_BASE_URL = self._get_optional(
            "OPENAI_BASE_URL", "https://api.openai.com/v1"
        )
        self.OPENAI_SCORING_MODEL = self._get_optional(
            "OPENAI_SCORING_MODEL", "gpt-4o-mini"
        )
        self.OPENAI_AGENT_MODEL = self._get_optional(
            "OPENAI_AGENT_MODEL", "gpt-4.1-mini"
        )
        self.LLM_TIMEOUT_SECONDS = int(
            self._get_optional("LLM_TIMEOUT_SECONDS", "60")
        )

        # Google Maps settings
        self.GOOGLE_MAPS_API_KEY = self._get_optional("GOOGLE_MAPS_API_KEY")
        self.SEARCH_ZONES = self._get_list("SEARCH_ZONES", DEFAULT_ZONES, sep=";")
        self.SEARCH_KEYWORDS = self._get_list("SEARCH_KEYWORDS", DEFAULT_KEYWORDS)
        self.SEARCH_RADIUS_METERS = int(
            self._get_optional("SEARCH_RADIUS_METERS", "3000")
        )
        self.MAX_RESULTS_PER_ZONE = int(
            self._get_optional("MAX_RESULTS_PER_ZONE", "20")
        )
        self.MIN_REVIEWS = int(self._get_optional("MIN_REVIEWS", "10"))
        self.MIN_RATING = float(self._get_optional("MIN_RATING", "3.5"))

        # Persistence
        self.DATABASE_URL = self._get_optional(
            "DATABASE_URL", "sqlite:///lead_radar.db"
        )

        # Website analysis
        self.WEBSITE_FETCH_TIMEOUT_MS = int(
            self._get_optional("WEBSITE_FETCH_TIMEOUT_MS", "5000")
        )
        self.SLOW_SITE_THRESHOLD_MS = int(
            self._get_optional("SLOW_SITE_THRESHOLD_MS", "3000")
        )

        # Scoring
        self.CONTACT_SCORE_THRESHOLD = int(
            self._get_optional("CONTACT_SCORE_THRESHOLD", "6")
        )

        # Freelance feed
        self.FEED_URL = self._get_optional(
            "FEED_URL", "https://www.codeur.com/projects.rss"
        )
        self.FEED_SKILLS = self._get_list("FEED_SKILLS", DEFAULT_FEED_SKILLS)
        self.FEED_MAX_AGE_HOURS = float(
            self._get_optional("FEED_MAX_AGE_HOURS", "2")
        )

        # Prospecting messages
        self.AGENCY_CITY = self._get_optional("AGENCY_CITY", "Lyon")
        self.MESSAGE_SIGNATURE = self._get_list(
            "MESSAGE_SIGNATURE", DEFAULT_SIGNATURE, sep="|"
        )

        # Rate limiting between external calls
        self.ITEM_DELAY_MS = int(self._get_optional("ITEM_DELAY_MS", "500"))
        self.PLACES_DELAY_MS = int(self._get_optional("PLACES_DELAY_MS", "200"))
        self.ZONE_DELAY_MS = int(self._get_optional("ZONE_DELAY_MS", "1000"))

    def _get_required(self, name: str, default: Optional[str] = None) -> str:
        """Get a required configuration value from environment variables.

        Args:
            name: The name of the environment variable
            default: Optional default value if not found

        Returns:
            The value of the environment variable or default if provided

        Raises:
            ConfigError: If the environment variable is not found and no default is provided
        """
        if name in os.environ:
            return os.environ[name]
        if default is not None:
            logging.warning(
                "Environment variable %s not found, using default value", name
            )
            return default
        raise ConfigError(
            f"Environment variable {name} not found and no default provided"
        )

    def _get_optional(self, name: str, default: str = "") -> str:
        """Get an optional configuration value from environment variables.

        Args:
            name: The name of the environment variable
            default: Default value if not found (default: "")

        Returns:
            The value of the environment variable or the default value
        """
        if name in os.environ:
            return os.environ[name]
        return default

    def _get_bool(self, name: str) -> bool:
        """Get a boolean configuration value from environment variables.

        Args:
            name: The name of the environment variable

        Returns:
            True if the environment variable exists and is set to 'true' or '1', False otherwise
        """
        return name in os.environ and os.environ[name].lower() in ["true", "1"]

    def _get_list(self, name: str, default: str = "", sep: str = ",") -> List[str]:
        """Get a separated list value, dropping blank entries."""
        raw = self._get_optional(name, default)
        return [item.strip() for item in raw.split(sep) if item.strip()]

    def validate_for_places(self) -> None:
        """Validate configuration required for the Google Maps lookup.

        Raises:
            ConfigError: If the Google Maps API key is missing.
        """
        if not self.GOOGLE_MAPS_API_KEY:
            raise ConfigError("GOOGLE_MAPS_API_KEY is required for places lookup")

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.APP_ENV.lower() in ["dev", "development"]


# Create a global instance of LeadRadarConfig
config = LeadRadarConfig()
