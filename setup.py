# File: regionfetch/setup.py
# Location: regionfetch/setup.py
"""
Setup script for regionfetch.

This file configures how the package is built, installed, and what
dependencies are required.
"""

import os
from setuptools import setup, find_packages

# Load version from version.py without importing the module
version = {}
with open(os.path.join("regionfetch", "version.py")) as f:
    exec(f.read(), version)

# Read the README for the long description
this_dir = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_dir, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="regionfetch",
    version=version["__version__"],
    description="Download BED-restricted, checksum-verified VCF files, one chromosome per job.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "pandas",
        "jinja2",
        "requests",
        "urllib3",
        "tqdm",
        "biopython",
    ],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["regionfetch=regionfetch.cli:main"]},
    include_package_data=True,
    package_data={"regionfetch": ["config.json", "templates/*.html"]},
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
    ],
)
