from setuptools import setup, find_namespace_packages

setup(
    name="tube-lyrics",
    version="0.1.0",
    description="Find, rank and synchronize lyrics for music videos from their titles, with word-level timing when available",
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    python_requires=">=3.10",
    license="MIT",
    packages=find_namespace_packages(include=["tube_lyrics", "tube_lyrics.*"]),
    package_data={"tube_lyrics": ["py.typed"], "tube_lyrics.i18n": ["*.json"]},
    install_requires=[
        "colorama",
        "korean-romanizer",
        "pykakasi",
        "regex",
        "requests",
        "typer",
    ],
    extras_require={
        "dev": [
            "pytest",
            "black",
            "ruff",
            "mypy",
        ]
    },
    entry_points={
        "console_scripts": [
            "tube-lyrics=tube_lyrics.cli:main",
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio",
        "Topic :: Utilities",
    ],
    keywords="lyrics lrc youtube karaoke synchronized musixmatch lrclib deezer",
)
