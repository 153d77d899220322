"""Setup script for ordinals-data"""

from setuptools import setup, find_packages

setup(
    name="ordinals-data",
    version="0.1.0",
    packages=find_packages(where="python-glue", exclude=["tests", "tests.*"]),
    package_dir={"": "python-glue"},
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.104.0",
        "uvicorn[standard]>=0.24.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "httpx>=0.25.0",
        "typer>=0.9.0",
        "rich>=13.7.0",
        "python-dotenv>=1.0.0",
        "toml>=0.10.2",
        "prometheus-client>=0.19.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "odc=ordinals_data.cli.main:app",
        ],
    },
)
