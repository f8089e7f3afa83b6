"""
Setup configuration for AUTHTABLES package.
"""

from pathlib import Path

from setuptools import find_packages, setup

# Read README for long description
readme_file = Path(__file__).parent / "authtables" / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")

setup(
    name="authtables",
    version="0.1.0",
    description="Schema discovery and migration synthesis for authentication features",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"authtables": ["templates/*.sql.j2"]},
    python_requires=">=3.10",
    install_requires=[
        "sqlalchemy>=2.0.0",
        "jinja2>=3.1.0",
        "pydantic>=2.0.0",
        "jsonschema>=4.0.0",
        "click>=8.0.0",
        "inflection>=0.5.0",
    ],
    extras_require={
        "postgres": ["psycopg2-binary>=2.9.0"],
        "mysql": ["pymysql>=1.0.0"],
        "test": ["pytest>=7.0.0"],
        "all": [
            "psycopg2-binary>=2.9.0",
            "pymysql>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "authtables=authtables.cli.main:cli",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    keywords="authentication database schema migration ddl",
    include_package_data=True,
)
