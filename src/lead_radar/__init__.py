"""Lead Radar: business and freelance-project lead scoring for a web agency."""

__version__ = "0.1.0"
