"""Environment variable resolution for the Ollama provider.

Ollama runs as a local server, so configuration focuses on host/port
rather than API keys.
"""

import os


# Default Ollama server address
DEFAULT_OLLAMA_HOST = "http://localhost:11434"

# First model load can take minutes on a cold server.
DEFAULT_STREAM_TIMEOUT = 300.0


def resolve_host() -> str:
    """Resolve Ollama server host URL.

    Checks:
    1. OLLAMA_HOST environment variable

    A bare ``host:port`` value (as accepted by the ollama CLI) is given an
    ``http://`` scheme.

    Returns:
        Ollama host URL (default: http://localhost:11434).
    """
    host = os.environ.get("OLLAMA_HOST", "").strip()
    if not host:
        return DEFAULT_OLLAMA_HOST
    if "://" not in host:
        host = f"http://{host}"
    return host
