#!/usr/bin/env python3
"""Setup script for BoardMind."""

from setuptools import setup, find_packages

setup(
    name="boardmind",
    version="1.0.0",
    description="Spatial diagram editor for sticky-note boards, site maps and impact maps",
    author="BoardMind Project",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[],
    extras_require={
        "gui": [
            "PyGObject>=3.46.0",
            "pycairo>=1.25.0",
        ],
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "boardmind=boardmind.launcher:main",
            "boardmind-transfer=boardmind.transfer:main",
        ],
        "gui_scripts": [
            "boardmind-gui=boardmind.launcher:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: X11 Applications :: GTK",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business",
    ],
)
