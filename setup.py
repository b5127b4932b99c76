from setuptools import setup, find_packages

setup(
    name="easy-get-coin-stake-api",
    version="0.1.0",
    packages=find_packages(include=["cache", "config", "error_handling", "staking"]),
    py_modules=["api"],
    install_requires=[
        "fastapi",
        "uvicorn",
        "pydantic>=2",
        "pydantic-settings",
        "structlog",
        "prometheus-client",
        "aiohttp",
        "pycryptodome",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "stake-api=api:main",
        ],
    }
)
