[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "aiocompress"
version = "0.1.0"
description = "Asyncio reader adaptors for brotli, bzip2, deflate, gzip, zlib, zstd, xz and lzma compression"
requires-python = ">=3.10"
keywords = ["compression", "asyncio", "gzip", "zstd", "brotli", "xz", "lzma", "streams"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Compression",
]
dependencies = [
    "brotli",
    "zstandard",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "hypothesis",
]

[tool.hatch.build.targets.wheel]
packages = ["aiocompress"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
