"""
Setup script for adaptive-tutor-core.

The decision core of an adaptive tutoring system. It serves three roles:

1. Knowledge Tracing - Bayesian mastery estimates from graded attempts
2. Scheduling - spaced review intervals and forgetting risk
3. Planning - ranked, time-budgeted study recommendations

The package is a library; callers own persistence and delivery.
"""

from setuptools import find_packages, setup

setup(
    name="adaptive-tutor-core",
    version="1.0.0",
    description="Mastery tracing, review scheduling and study planning for adaptive tutoring",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["tutor_engine", "tutor_engine.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning knowledge-tracing spaced-repetition irt education",
)
