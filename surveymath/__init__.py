"""
Surveymath package for survey response analysis.

This is the statistical analysis and clustering engine behind the survey
analytics product: descriptive statistics, correlation, ANOVA and k-means
segmentation over in-memory response records.
"""

__version__ = '0.1.0'

from surveymath.components.config import Config, ConfigManager
from surveymath.survey.analysis import SurveyAnalysis, analyze_survey
