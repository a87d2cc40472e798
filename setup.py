#!/usr/bin/env python3
"""
Setup script for the Keymasterd Python package.
"""

from pathlib import Path

from setuptools import find_packages, setup


# Read requirements from requirements.txt
def read_requirements():
    requirements_file = Path(__file__).parent / "requirements.txt"
    if requirements_file.exists():
        with open(requirements_file, "r") as f:
            return [
                line.strip()
                for line in f
                if line.strip() and not line.startswith("#")
            ]
    return []


# Read version from __init__.py
def get_version():
    init_file = Path(__file__).parent / "keymasterd" / "__init__.py"
    if init_file.exists():
        with open(init_file, "r") as f:
            for line in f:
                if line.startswith("__version__"):
                    return line.split("=")[1].strip().strip('"').strip("'")
    return "1.0.0"


setup(
    name="keymasterd",
    version=get_version(),
    description="HTTP access to Keychain secrets guarded by a user-presence challenge",
    long_description="Serves secrets from the macOS Keychain over a local HTTP endpoint, as a daemon or per-connection inetd handler, releasing each secret only after HTTP Basic Auth and a fresh Touch ID / password challenge.",
    author="Keymasterd Team",
    python_requires=">=3.9",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=read_requirements(),
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "keymaster=keymasterd.cli:main",
            "keymasterd=keymasterd.daemon:main",
            "keymasterd-inetd=keymasterd.inetd:main",
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: No Input/Output (Daemon)",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: MacOS :: MacOS X",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Security",
        "Topic :: System :: Systems Administration",
    ],
    keywords="keychain secrets touch-id http daemon launchd inetd",
    zip_safe=False,
)
