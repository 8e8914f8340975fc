"""
Setup script for lazypdf.

This script configures the package for installation via pip.
Sources live under ``packages/``.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README for long description
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

# Read requirements
requirements = (this_directory / "requirements.txt").read_text(encoding="utf-8").splitlines()

setup(
    name="lazypdf",
    version="0.1.0",
    description="Lazy, random-access reader for the PDF object graph",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="lazypdf Contributors",
    author_email="",
    package_dir={"": "packages"},
    packages=find_packages("packages", exclude=["tests", "tests.*"]),
    install_requires=[line for line in requirements if line and not line.startswith("#")],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Operating System :: OS Independent",
    ],
    keywords="pdf xref parser object-stream filters reader",
    license="MIT",
    include_package_data=True,
    zip_safe=False,
)
