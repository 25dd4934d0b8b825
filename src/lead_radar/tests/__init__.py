"""
Lead Radar Test Package.

This package contains unit tests for the Lead Radar modules.

Test categories:
- test_config.py: Configuration and environment variable loading
- test_logging_utils.py: Log formatters and handler setup
- test_models.py: Pydantic model validation and run summaries
- test_text.py, test_website_analyzer.py: Normalization and site signals
- test_improvements.py: Audit improvement selection
- test_prompts.py, test_response_parser.py: Prompt templates and reply parsing
- test_heuristics.py, test_scorer.py: Heuristic and model-backed scoring
- test_places.py, test_feed.py: Lead sources
- test_storage.py, test_events.py, test_pipeline.py, test_main.py: Runs
"""

__all__ = []
