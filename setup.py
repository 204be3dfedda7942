"""Setup configuration for tablesync package."""

from setuptools import setup, find_namespace_packages

setup(
    name="tablesync",
    version="1.0.0",
    description="Concurrent batch import of delimited files into DuckDB tables",
    author="Alex",
    author_email="",
    packages=find_namespace_packages(
        include=["config", "config.*", "src", "src.*", "scripts"],
    ),
    python_requires=">=3.11",
    install_requires=[
        "duckdb>=1.0.0",
        "pandas>=2.1.0",
        "python-dotenv>=1.0.0",
        "pyyaml>=6.0",
        "chardet>=5.2.0",
        "tqdm>=4.66.0",
        "tenacity>=8.2.0",
    ],
    extras_require={
        "dev": [
            "pytest>=8.0.0",
            "pytest-cov>=4.1.0",
            "black>=24.1.0",
            "ruff>=0.2.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tablesync-import=scripts.import_file:main",
            "tablesync-process=scripts.process_directory:main",
            "tablesync-tables=scripts.list_tables:main",
        ],
    },
)
