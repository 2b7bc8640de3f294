"""
Setup script for recall-scheduler.

Recall is the adaptive scheduling core of a flashcard learning system.
It decides when each learned item should next be reviewed and how well
it is currently known:

1. Forgetting Curve - personal retention/forgetting estimates per item
2. Concept Mastery - keyword concepts classified from recent reviews
3. Study Streaks - day-granular continuity with milestone tracking

The 'recall' command is a thin operator CLI over the library.
"""

from setuptools import find_packages, setup

setup(
    name="recall-scheduler",
    version="1.0.0",
    description="Adaptive spaced-repetition scheduling core: forgetting curves, concept mastery, streaks",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
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
    entry_points={
        "console_scripts": [
            "recall=recall.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition forgetting-curve mastery streaks",
)
