"""Allow running as python -m kotorformats."""

from kotorformats.cli import app


def main() -> None:
    app()


main()
