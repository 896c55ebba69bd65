"""
Setup script for MediaDrop
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text() if readme_path.exists() else ""

setup(
    name="mediadrop",
    version="0.1.0",
    author="MediaDrop Team",
    description="Token-addressed photo and video drop albums with per-contributor ownership",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Framework :: Flask",
        "Topic :: Multimedia :: Graphics",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "Flask>=2.3.0",
        "flask-cors>=4.0.0",
        "Werkzeug>=2.3.0",
        "SQLAlchemy>=2.0.0",
        "Pillow>=10.0.0",
        "click>=8.1.0",
        "PyYAML>=6.0",
        "PyJWT>=2.8.0",
        "pydantic>=2.0.0",
        "colorlog>=6.7.0",
        "tabulate>=0.9.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mediadrop=mediadrop.cli.main:main",
        ],
    },
    include_package_data=True,
    package_data={
        "mediadrop": ["config.yaml"],
    },
)
