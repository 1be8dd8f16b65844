"""
Setup script for the Import/Export Orchestrator

Asynchronous bulk import/export job engine for tabular entities: background
export to Excel, CSV, PDF and JSON, row-isolated import from Excel and CSV,
progress tracking and a durable job history.
"""

from setuptools import setup, find_packages
import pathlib

here = pathlib.Path(__file__).parent.resolve()

# Get the long description from the README file
try:
    long_description = (here / "README.md").read_text(encoding="utf-8")
except FileNotFoundError:
    long_description = """
    Import/Export Orchestrator

    Asynchronous bulk import/export job engine with per-row failure isolation,
    error reports, progress polling and a PostgreSQL-backed history ledger.
    """

setup(
    name="import-export-orchestrator",
    version="1.0.0",
    description="Asynchronous bulk import/export job engine for tabular data",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Import/Export Orchestrator Team",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: Office/Business",
    ],
    keywords="import, export, excel, csv, pdf, bulk data, background jobs, async",
    packages=find_packages(exclude=["tests", "tests.*", "examples", "examples.*"]),
    python_requires=">=3.9",
    install_requires=[
        # Core dependencies
        "asyncpg>=0.27.0",
        "click>=8.0.0",

        # File handling and tabular formats
        "aiofiles>=23.1.0",
        "openpyxl>=3.1.0",
        "reportlab>=4.0.0",

        # Configuration and serialization
        "pyyaml>=6.0",
        "pydantic>=2.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=22.0.0",
            "isort>=5.10.0",
            "mypy>=1.0.0",
            "coverage>=6.0.0",
            "flake8>=5.0.0",
        ],
        "redis": [
            "redis>=5.0.1",
        ],
        "all": [
            # Dev dependencies
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=22.0.0",
            "isort>=5.10.0",
            "mypy>=1.0.0",
            "coverage>=6.0.0",
            "flake8>=5.0.0",

            # Cache dependencies
            "redis>=5.0.1",
        ]
    },
    entry_points={
        "console_scripts": [
            "import-export-orchestrator=import_export_orchestrator.cli.main:main",
            "ieo=import_export_orchestrator.cli.main:main",
        ],
    },
)
