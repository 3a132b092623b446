"""Setup configuration for drivetreelib."""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text() if readme_path.exists() else ""

setup(
    name="drivetreelib",
    version="0.1.0",
    author="drivetreelib Development Team",
    description="Concurrency-bounded crawler and sharing audit for paginated remote folder trees",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*", "examples", "examples.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Topic :: Security",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        # The core is pure asyncio; remote services come in as extras
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "pytest-cov>=4.0",
            "black>=23.0",
            "flake8>=6.0",
            "mypy>=1.0",
        ],
        "drive": [
            "google-api-python-client>=2.0",
            "google-auth>=2.0",
            "google-auth-httplib2>=0.1",
            "google-auth-oauthlib>=1.0",
            "httplib2>=0.20",
            "requests>=2.25",
        ],
    },
    entry_points={
        "console_scripts": [
            "drivetreelib=drivetreelib.cli:main",
        ],
    },
)
