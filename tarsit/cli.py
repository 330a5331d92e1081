"""Command-line interface for tarsit."""

import sys
from pathlib import Path

import click

from .core.config import AppConfig
from .core.crypto import CryptoUtils
from .core.storage import SessionStore
from .core.validators import validate_password_strength


@click.group()
@click.version_option(prog_name="tarsit")
def main():
    """tarsit - business directory and booking API."""
    pass


@main.command()
@click.option("--host", "-h", default=None, help="Host to bind to (default: TARSIT_HOST)")
@click.option("--port", "-p", default=None, type=int, help="Port to bind to (default: TARSIT_PORT)")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.option("--workers", "-w", default=1, type=int, help="Number of worker processes")
def run(host: str | None, port: int | None, reload: bool, workers: int):
    """Start the API server."""
    import uvicorn

    try:
        config = AppConfig.from_env()
    except ValueError as e:
        click.echo(click.style("Error: ", fg="red") + str(e))
        sys.exit(1)

    host = host or config.host
    port = port or config.port
    click.echo(f"Starting tarsit on http://{host}:{port} ({config.environment})")

    uvicorn.run(
        "tarsit.main:get_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=workers if not reload else 1,
    )


@main.command("hash-password")
@click.option("--rounds", "-r", default=10, type=click.IntRange(4, 31), help="bcrypt cost factor")
@click.option("--check/--no-check", default=True, help="Enforce password strength rules")
@click.password_option()
def hash_password(rounds: int, check: bool, password: str):
    """Print the bcrypt hash of a password."""
    if check:
        strength = validate_password_strength(password)
        if not strength.is_valid:
            for error in strength.errors:
                click.echo(click.style("Error: ", fg="red") + error)
            sys.exit(1)
    click.echo(CryptoUtils(bcrypt_rounds=rounds).hash_password(password))


@main.command("gen-token")
@click.option("--bytes", "-b", "length", default=32, type=click.IntRange(1, 1024), help="Random bytes")
def gen_token(length: int):
    """Print a random hex token."""
    click.echo(CryptoUtils().generate_token(length))


@main.command("gen-code")
@click.option("--length", "-l", default=6, type=click.IntRange(1, 18), help="Number of digits")
def gen_code(length: int):
    """Print a random numeric code."""
    click.echo(CryptoUtils().generate_code(length))


@main.command("cleanup-sessions")
@click.option(
    "--dir",
    "-d",
    "base_dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Base directory (default: TARSIT_BASE_DIR or current directory)",
)
def cleanup_sessions(base_dir: Path | None):
    """Remove expired sessions from the session store."""
    config = AppConfig.from_env(base_dir)
    removed = SessionStore(config.sessions_file).cleanup_expired()
    click.echo(f"Removed {removed} expired session(s)")


if __name__ == "__main__":
    main()
