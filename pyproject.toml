[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fake-ollama"
version = "0.1.0"
description = "A local server that speaks the Ollama API and forwards chat requests to an OpenAI-compatible endpoint"
requires-python = ">=3.10"
keywords = ["ollama", "openai", "proxy", "llm", "chat", "aiohttp"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: Web Environment",
    "Framework :: AsyncIO",
    "Framework :: aiohttp",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
]
dependencies = [
    "aiohttp>=3.9",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
]

[project.scripts]
fake-ollama = "fake_ollama.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["fake_ollama"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
