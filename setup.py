"""
Setup script for lesson-progression.

Lesson progression is the offline-first test-taking and lesson-unlocking
core of a language-learning app. It serves three roles:

1. Local Progress Store - per-device lesson progress and test attempts
2. Scoring & Unlocking - scores attempts and unlocks the next lesson
3. Remote Mirror - best-effort push of progress to a hosted table API

The 'progression' command inspects and resets the local store.
"""

from setuptools import find_packages, setup

setup(
    name="lesson-progression",
    version="1.0.0",
    description="Offline-first lesson progression, test scoring, and unlocking",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Lesson Progression Maintainers",
    packages=find_packages(include=["progression", "progression.*"]),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "progression=progression.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
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
    keywords="learning progress offline lessons tests education",
)
