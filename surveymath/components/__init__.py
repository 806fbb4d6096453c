"""
Supporting components for the survey math engine.
"""

from surveymath.components.config import Config, ConfigManager
