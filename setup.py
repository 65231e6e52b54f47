"""
Setup script for the Custom Vision Detector Workflow.

Author: Detector Workflow Team
Date: October 2026
"""

import re
from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
def read_readme():
    readme_path = Path(__file__).parent / "README.md"
    if readme_path.exists():
        with open(readme_path, "r", encoding="utf-8") as fh:
            return fh.read()
    return "Custom Vision Detector Workflow - upload, train, publish, predict and export object detectors"

# Read requirements
def read_requirements():
    requirements_path = Path(__file__).parent / "requirements.txt"
    if requirements_path.exists():
        with open(requirements_path, "r", encoding="utf-8") as fh:
            return [
                line.strip()
                for line in fh
                if line.strip() and not line.startswith("#") and not line.startswith("--")
            ]
    return []

# Read version from package
def get_version():
    """Extract version from package without importing it."""
    init_path = Path(__file__).parent / "detector_workflow" / "__init__.py"
    match = re.search(r'^__version__ = "([^"]+)"', init_path.read_text(encoding="utf-8"), re.M)
    return match.group(1) if match else "1.0.0"

setup(
    name="custom-vision-detector-workflow",
    version=get_version(),
    author="Detector Workflow Team",
    author_email="contact@example.com",
    description="End-to-end Azure Custom Vision object detection workflow",
    long_description=read_readme(),
    long_description_content_type="text/markdown",

    # Package configuration
    packages=find_packages(include=["detector_workflow", "detector_workflow.*"]),

    # Dependencies
    python_requires=">=3.8",
    install_requires=read_requirements(),

    # Optional dependencies for different use cases
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "pytest-mock>=3.11.1",
            "pytest-timeout>=2.1.0",
            "black>=23.7.0",
            "flake8>=6.0.0",
            "isort>=5.12.0",
            "mypy>=1.5.1",
        ],
    },

    # Entry points for command-line tools
    entry_points={
        "console_scripts": [
            "detector-workflow=detector_workflow.pipeline:main",
            "detector-workflow-predict=detector_workflow.inference.predict:main",
            "detector-workflow-export=detector_workflow.export.export_model:main",
        ],
    },

    # Package metadata
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Scientific/Engineering :: Image Recognition",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],

    keywords=[
        "computer-vision", "object-detection", "azure", "custom-vision", "automation"
    ],

    include_package_data=True,
    zip_safe=False,

    # Testing
    test_suite="tests",
    tests_require=[
        "pytest>=7.4.0",
        "pytest-cov>=4.1.0",
        "pytest-mock>=3.11.1",
    ],

    license="MIT",
    platforms=["any"],
)
