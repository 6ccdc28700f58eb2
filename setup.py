from setuptools import setup, find_packages

setup(
    name="fiberscope",
    version="0.1.0",
    packages=find_packages(include=["fiberscope", "fiberscope.*"]),
    install_requires=[
        "python-socketio>=5.8",
        "aiohttp>=3.8",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "python-dotenv",
        "opentelemetry-api",
        "opentelemetry-sdk",
        "opentelemetry-exporter-otlp-proto-http",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "pytest-mock",
        ],
    },
    entry_points={
        "console_scripts": [
            "fiberscope=fiberscope.main:main",
            "fiberscope-inspect=fiberscope.cli_inspect:main",
        ],
    },
    python_requires=">=3.8",
)
