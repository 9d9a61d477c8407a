"""Mkulima setup - offline queue, sync and escrow for Mkulima Connect."""
from setuptools import setup, find_packages

setup(
    name="mkulima",
    version="0.4.0",
    description="Mkulima: offline action queue, sync engine and payment escrow",
    packages=find_packages(include=["mkulima", "mkulima.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "blake3>=0.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mkulima=mkulima.cli.main:cli",
        ],
    },
)
