"""
SRTLA Relay - bonded SRT sender supervision
Keeps srtla_send fed with live network paths and in sync with the host URL
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="srtla-relay",
    version="1.0.0",
    description="Supervises an SRTLA bonding sender and syncs its settings with the host SRT URL",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["srtla_relay", "srtla_relay.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Video",
        "Topic :: System :: Networking",
    ],
    python_requires=">=3.10",
    install_requires=[
        "psutil>=5.9.0",  # interfaces and process control
        "click>=8.0.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "srtla-relay=srtla_relay.cli:main",
        ],
    },
)
