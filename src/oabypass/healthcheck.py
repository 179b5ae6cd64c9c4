"""Container healthcheck entrypoint."""
import os
import urllib.request


def _resolve_url() -> str:
    """Build the liveness URL from PORT, falling back to the default port."""
    try:
        port = int(os.getenv("PORT", "8080"))
    except ValueError:
        port = 8080
    return f"http://127.0.0.1:{port}/health"


def main() -> int:
    """Return exit code 0 if /health is reachable."""
    try:
        urllib.request.urlopen(_resolve_url(), timeout=2)
        return 0
    except OSError:
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
