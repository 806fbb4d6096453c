"""
Setup script for surveymath package.
"""

from setuptools import setup, find_packages

setup(
    name="surveymath",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        # Core numerical dependencies
        "numpy>=1.20.0",
        "pandas>=1.3.0",
        "scipy>=1.7.0",

        # Input validation
        "pydantic>=2.0.0",

        # Utilities
        "pyyaml>=6.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=6.0.0",
            "scikit-learn>=1.0.0",
        ],
    },
    author="Survey Analytics Team",
    description="Statistical analysis and segmentation engine for survey responses",
    keywords="survey, sentiment, statistics, anova, clustering",
    python_requires=">=3.8",
)
