"""Entry point for running flowdag as a module (``python -m flowdag``)."""

from __future__ import annotations


def main() -> None:
    """Main entry point for module execution."""
    from flowdag.cli.main import main as cli_main

    cli_main()


if __name__ == "__main__":
    main()
