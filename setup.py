from setuptools import setup, find_packages

setup(
    name="carbon-credit",
    version="0.1",
    packages=find_packages(include=["carbon_credit", "carbon_credit.*"]),
    python_requires=">=3.9",
    install_requires=[
        "web3>=7.0",
        "httpx",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "python-dotenv",
        "fastapi",
        "python-multipart",
        "uvicorn",
        "watchdog"
    ],
    extras_require={
        "test": [
            "pytest>=7",
            "pytest-asyncio"
        ]
    }
)
