from setuptools import setup, find_packages

setup(
    name="quotagate",
    version="0.1.0",
    packages=find_packages(include=["quotagate", "quotagate.*"]),
    python_requires=">=3.12",
    install_requires=[
        "fastapi",
        "starlette",
        "uvicorn",
        "pydantic>=2",
        "pydantic-settings",
        "sqlalchemy[asyncio]>=2.0",
        "asyncpg",
        "redis>=5",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
            "aiosqlite",
        ],
    },
)
