#!/usr/bin/env python3
"""
Blob Cache Setup Script
=======================
Allows installation of the kv-blob-cache package.

Usage:
    pip install -e .           # Development install
    pip install -e .[test]     # With test dependencies
    pip install .              # Regular install
"""

from setuptools import setup, find_packages

setup(
    name="kv-blob-cache",
    version="1.0.0",
    packages=find_packages(include=["blobcache", "blobcache.*"]),
    python_requires=">=3.10",
    install_requires=[
        "httpx>=0.24",
        "tenacity>=8.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
)
