#!/usr/bin/env python3
"""Setup script for Market News Aggregator."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="market-news-aggregator",
    version="0.1.0",
    author="Market News Team",
    author_email="team@example.com",
    description="Aggregates, deduplicates, clusters and ranks market news from many sources",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/yourusername/market-news-aggregator",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Financial and Insurance Industry",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: WWW/HTTP :: Indexing/Search",
        "Topic :: Office/Business :: Financial",
        "Topic :: Text Processing :: Linguistic",
    ],
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5",
        "pydantic-settings>=2.2",
        "aiohttp>=3.9",
        "selectolax>=0.3.21",
        "feedparser>=6.0",
        "structlog>=24.1",
        "orjson>=3.10",
        "click>=8.1",
        "pyyaml>=6.0",
        "rich>=13.7.1",
    ],
    extras_require={
        "dev": [
            "pytest>=8.2",
            "pytest-asyncio>=0.23",
            "ruff>=0.4",
            "mypy>=1.10",
            "coverage>=7.5",
            "pytest-cov>=4.1",
            "aresponses>=3.0.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "marketnews=marketnews.orchestrator:cli",
            "check-sources=marketnews.check_sources:main",
        ],
    },
    include_package_data=True,
    package_data={
        "marketnews": ["*.yaml"],
    },
)
