"""Setup script for the Backlink Opportunity & Monitoring Engine."""

from setuptools import setup, find_packages

setup(
    name="backlink-engine",
    version="0.1.0",
    description="Backlink opportunity discovery and backlink monitoring engine",
    author="Common Notary Apostille",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    install_requires=[
        "sqlalchemy>=2.0.0",
        "click>=8.1.0",
        "rich>=13.6.0",
        "requests>=2.31.0",
        "tenacity>=8.2.0",
        "httpx>=0.25.0",
        "beautifulsoup4>=4.12.0",
        "loguru>=0.7.0",
        "python-dotenv>=1.0.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "backlink-engine=backlink_engine.cli:main",
        ],
    },
    python_requires=">=3.10",
)
