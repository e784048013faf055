#!/usr/bin/env python
"""
Setup script for contextrank
"""
import re
from pathlib import Path

from setuptools import setup, find_packages

this_directory = Path(__file__).parent

# Read version from the package
version_file = this_directory / "src" / "contextrank" / "_version.py"
version = re.search(
    r'^__version__ = "([^"]+)"', version_file.read_text(encoding="utf-8"), re.MULTILINE
).group(1)


setup(
    name="contextrank",
    version=version,
    description="Tenant-isolated hybrid retrieval engine with multi-signal relevance scoring",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Libraries",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
    ],
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.6.0",
        "loguru>=0.7.2",
        "pyyaml>=6.0.0",
        "numpy>=2.3.0",
        "requests>=2.31.0",
    ],
    extras_require={
        "dev": [
            "pytest>=8.4.0",
            "pytest-cov>=5.0.0",
            "mypy>=1.8.0",
            "black>=22.0.0",
            "ruff>=0.12.0",
            "types-pyyaml>=6.0.12",
            "types-requests>=2.32.4",
        ],
    },
    include_package_data=True,
)
