"""Main entry point for the gearledger package."""

from gearledger.cli import app


def main():
    """Run the command-line interface."""
    app()


if __name__ == "__main__":
    main()
