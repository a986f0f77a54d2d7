"""
LearnForge — Setup Script
==========================
Installs LearnForge as a local editable package so that all internal
imports (e.g. `from learnforge.training import LearnerController`) work
from any script or notebook.

Usage:
    cd /path/to/learnforge
    pip install -e ".[dev]"
"""

from setuptools import setup, find_packages

setup(
    name="learnforge",
    version="0.1.0",
    description=(
        "LearnForge: cooperative, cancelable training control for layered "
        "neural networks, with weight and updater transfer for uptraining"
    ),
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=("tests", "tests.*", "scripts", "configs")),
    python_requires=">=3.10",
    install_requires=[
        "torch>=2.1.0",
        "numpy>=1.24.0",
        "tqdm>=4.65.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": ["pytest>=7.0"],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
    ],
)
