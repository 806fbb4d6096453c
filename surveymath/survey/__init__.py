"""
Survey analysis module for surveymath.
"""

from surveymath.survey.analysis import SurveyAnalysis, analyze_survey
