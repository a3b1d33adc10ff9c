#!/usr/bin/env python3
"""
Setup configuration for spot-audit
Audit Spotify playlists and Liked Songs for unplayable tracks
"""

from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Core requirements (always installed)
core_requirements = [
    "spotipy>=2.23.0",
    "pyyaml>=6.0.1",
    "requests>=2.31.0",
    "tqdm>=4.66.1",
    "python-dotenv>=1.0.0",
]

setup(
    name="spot-audit",
    version="0.1.0",
    author="spot-audit",
    description="Find grey tracks in a Spotify library, remove dead duplicates and sync playlists to Liked Songs",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["spot_audit", "spot_audit.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio",
    ],
    python_requires=">=3.10",
    install_requires=core_requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.3",
        ],
    },
    include_package_data=True,
    keywords="spotify playlist liked-songs audit isrc relink",
)
