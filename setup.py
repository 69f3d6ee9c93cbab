"""Setup script for imageguard."""

from setuptools import find_packages, setup

setup(
    name="imageguard",
    version="0.1.0",
    description="Sniff and downscale images in agent tool results before they reach the model",
    packages=find_packages(include=["imageguard", "imageguard.*"]),
    install_requires=[
        "langchain>=1.0.0",
        "langchain-core>=1.0.0",
        "langgraph>=1.0.0",
        "Pillow>=10.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "imageguard=imageguard.cli:main",
        ],
    },
    python_requires=">=3.10",
)
