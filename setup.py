"""
YT Flashcards — build script.

Usage:
    # Development (editable install):
    pip install -e .

    # Run the tests:
    python -m unittest discover tests
"""

from setuptools import setup

APP_NAME = "yt-flashcards"

setup(
    name=APP_NAME,
    version="1.0.0",
    description="Generate flashcards from YouTube videos: download, transcribe, summarize",
    packages=[
        "yt_flashcards",
        "yt_flashcards.core",
        "yt_flashcards.service",
    ],
    py_modules=["main"],
    install_requires=[
        "requests>=2.28.0",
        "yt-dlp>=2024.1.0",
    ],
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "yt-flashcards=main:main",
        ],
    },
)
