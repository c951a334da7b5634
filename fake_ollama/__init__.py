"""Local Ollama-compatible server that forwards chat requests to an OpenAI-compatible API."""

__version__ = "0.1.0"
__all__ = ["cli", "protocol", "server"]