"""
Setup script for blockutils.
"""

from __future__ import annotations

from pathlib import Path
import sys

from setuptools import find_packages, setup

ROOT = Path(__file__).resolve().parent
README = ROOT / "README.md"

long_description = ""
if README.exists():
    long_description = README.read_text(encoding="utf-8")

if len(sys.argv) == 1:
    print("No command supplied; defaulting to `install`.")
    sys.argv.append("install")

setup(
    name="blockutils",
    version="0.11.1",
    description="Block device discovery, filesystem classification and formatting for Linux",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="MIT",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5.0",
        "structlog>=24.1.0",
        "click>=8.1.0",
        "rich>=13.7.0",
        "psutil>=5.9.0",
        "humanize>=4.9.0",
    ],
    extras_require={
        "dev": [
            "pytest>=8.0.0",
            "pytest-cov>=4.1.0",
            "pytest-mock>=3.12.0",
            "ruff>=0.2.0",
            "mypy>=1.8.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "blockutils=blockutils.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: System Administrators",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Filesystems",
        "Topic :: System :: Systems Administration",
    ],
)
