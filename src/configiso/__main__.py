"""Main entry point for configiso commands."""

from configiso.cli.main import main


if __name__ == "__main__":
    main()
