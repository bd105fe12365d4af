"""
CLI interface for c3 using Typer.
"""

# Import shared state (apps, options, utilities) first
from ._shared import app, ServerOption  # noqa: F401

# Import submodules to register their commands with the Typer apps
from . import serve  # noqa: F401
from . import sessions  # noqa: F401
from . import hooks  # noqa: F401
from . import config  # noqa: F401


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
