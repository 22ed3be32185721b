"""
Setup script for couchsweep
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="couchsweep",
    version="0.1.0",
    description="Page through a CouchDB database and bulk-migrate documents with task functions",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["couchsweep", "couchsweep.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Database",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.8",
    install_requires=[
        "CouchDB>=1.2",
    ],
    extras_require={
        "dev": [
            "pytest>=6.0",
            "black>=21.0",
            "flake8>=3.9",
        ],
    },
    entry_points={
        "console_scripts": [
            "couchsweep=couchsweep.cli:main",
        ],
    },
    include_package_data=True,
    keywords="couchdb, migration, bulk update, pagination",
)
