"""Command line entry point of the proxy."""

from __future__ import annotations

import argparse
import json
from typing import Sequence

from fake_ollama.server import Config, run

_VERSION = "0.1.0"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 11434
_RULE = "-" * 40


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fake-ollama",
        description="Answer Ollama API requests by forwarding them to an OpenAI-style server.",
    )
    parser.add_argument("-V", "--version", action="version", version=f"fake-ollama {_VERSION}")
    parser.add_argument("-u", "--url", required=True, help="Remote server URL")
    parser.add_argument("-a", "--api-key", required=True, help="API key for the remote server")
    parser.add_argument(
        "--enabled-models",
        nargs="+",
        action="append",
        default=[],
        help="Enabled models, separated by commas",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> Config:
    """Read the configuration from command line arguments."""
    namespace = _build_parser().parse_args(argv)
    models = [
        name
        for group in namespace.enabled_models
        for value in group
        for name in value.split(",")
    ]
    return Config(url=namespace.url, api_key=namespace.api_key, enabled_models=models)


def banner(config: Config, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> str:
    """The start-up text describing the configuration and endpoints."""
    models = ", ".join(json.dumps(name, ensure_ascii=False) for name in config.enabled_models)
    lines = [
        f"Fake Ollama is listening on http://{host}:{port}",
        _RULE,
        "Configuration:",
        f"  Remote server URL: {config.url}",
        f"  Enabled models: [{models}]",
        _RULE,
        "Available API Endpoints:",
        "  GET    /",
        "  POST   /api/chat",
        "  POST   /v1/chat/completions",
        "  POST   /api/generate",
        "  GET    /api/tags",
        _RULE,
    ]
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> None:
    """Parse arguments, print the banner and serve."""
    config = parse_args(argv)
    print(banner(config, DEFAULT_HOST, DEFAULT_PORT))
    run(config, DEFAULT_HOST, DEFAULT_PORT)