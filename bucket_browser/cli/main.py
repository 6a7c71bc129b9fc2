"""Main CLI entry point for bucket-browser."""

import click

from bucket_browser import __version__
from bucket_browser.cli.commands import storage
from bucket_browser.infra.logging.config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="bucket-browser")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Bucket Browser CLI - browse, transfer and rename objects in a bucket.

    The bucket and backend come from STORAGE_* environment variables
    (or a .env file); transfer tuning from TRANSFER_*.

    \b
    Quick Start:
      bucket-browser storage ls docs/
      bucket-browser storage upload ./report.pdf docs/report.pdf
      bucket-browser storage download docs/report.pdf ./out/report.pdf
      bucket-browser storage mv-prefix docs/ archive/docs/
    """
    ctx.ensure_object(dict)


cli.add_command(storage.storage)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
