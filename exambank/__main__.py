"""
Module entry point for: python -m exambank

Allows running the importer directly as a module:
    python -m exambank preview <pdf_path> [options]
    python -m exambank import <xlsx_path> --course BSGE [options]
    python -m exambank serve [options]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
