#!/usr/bin/env python3
"""
Setup configuration for tunebridge
Convert Spotify playlists to YouTube links
"""

from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Core requirements (always installed)
core_requirements = [
    "spotipy>=2.22.1",
    "requests>=2.31.0",
    "click>=8.1.7",
    "rich-click>=1.7.0",
    "rich>=13.0.0",
    "pyyaml>=6.0.1",
    "tqdm>=4.66.1",
    "python-dotenv>=1.0.0",
]

test_requirements = [
    "pytest>=7.4.3",
]

setup(
    name="tunebridge",
    version="0.1.0",
    author="tunebridge Team",
    description="Import Spotify playlists and match every track to a YouTube video",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["tunebridge", "tunebridge.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
    ],
    python_requires=">=3.10",
    install_requires=core_requirements,
    extras_require={
        "test": test_requirements,
        "dev": test_requirements + [
            "black>=23.11.0",
            "flake8>=6.1.0",
            "mypy>=1.7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tunebridge=tunebridge.cli:main",
        ],
    },
    keywords="spotify youtube music playlist converter cli",
)
