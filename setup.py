"""
autotable - Lightweight auto-table ORM over embedded SQLite

Declare records as dataclasses, and autotable derives the table schema,
generates the SQL, marshals values and migrates data on schema version changes.
"""

from setuptools import setup, find_packages
import os

# Read README for long description
def read_long_description():
    readme_path = os.path.join(os.path.dirname(__file__), 'README.md')
    if os.path.exists(readme_path):
        with open(readme_path, 'r', encoding='utf-8') as f:
            return f.read()
    return ""

# Define optional dependencies
extras_require = {
    # Development dependencies
    'dev': [
        'pytest>=7.0.0',
        'mypy>=0.950',
        'build>=0.7.0',
        'twine>=4.0.0',
    ],
}

setup(
    name="autotable",
    version="0.1.0",
    author="",
    author_email="",
    description="Lightweight auto-table ORM over embedded SQLite - dataclass records, generated SQL, versioned migration",
    long_description=read_long_description(),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=['examples', 'tests']),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Database",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Typing :: Typed",
    ],
    python_requires=">=3.10",

    # Core dependencies (zero external dependencies, sqlite3 from the standard library)
    install_requires=[],

    # Optional dependencies
    extras_require=extras_require,

    keywords="database orm sqlite dataclass migration embedded-database autotable",
)
