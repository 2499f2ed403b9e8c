import logging
import os

import click
import yaml
from dotenv import load_dotenv

from edtable.__version__ import __version__
from edtable.config import TableConfig, default_config_file, load_config
from edtable.controller import EditableTableController


class GetConfig(click.ParamType):
    """A custom Click parameter type for loading a table configuration.

    The user enters the path of a YAML file and this class loads it into a
    TableConfig.
    """

    name = "config"

    def convert(self, value, param, ctx):
        if isinstance(value, TableConfig):
            return value
        try:
            return load_config(value)
        except Exception as e:
            self.fail(
                f"Could not load configuration '{value}': {e}", param, ctx
            )


config_option = click.option(
    "--config",
    "config",
    type=GetConfig(),
    default=None,
    envvar="EDTABLE_CONFIG",
    help="The YAML file with the table configuration.",
)


def _resolve(config):
    if config is None:
        return load_config()
    return config


@click.group()
@click.option("--debug/--no-debug", default=False)
@click.version_option(__version__, prog_name="edtable")
def cli(debug: bool):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="[%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.debug("Debug mode is on")
    load_dotenv()


@cli.command(name="config")
@config_option
def show_config(config):
    """Print the resolved table configuration."""
    if config is None:
        click.echo(f"# {default_config_file()}")
    click.echo(yaml.safe_dump(_resolve(config).to_dict(), sort_keys=False))


@cli.command()
@click.argument(
    "rows_file",
    metavar="ROWS-FILE",
    type=click.Path(exists=True, file_okay=True, dir_okay=False),
)
@config_option
def check(rows_file: str, config):
    """Check that a file of rows can be loaded into an editable table.

    Arguments:
        ROWS-FILE: A YAML or JSON file holding a list of rows.
    """
    cfg = _resolve(config)
    with open(rows_file, "r") as f:
        rows = yaml.safe_load(f) or []
    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        raise click.ClickException(
            f"{os.path.basename(rows_file)} must contain a list of mappings"
        )

    ctrl = EditableTableController(
        rows=rows,
        config=cfg,
        on_pagination_change=lambda index, size: None,
    )
    click.echo(f"Rows: {len(ctrl.store)}")
    click.echo(f"Page size: {ctrl.pagination.page_size}")
    click.echo(f"Pages: {ctrl.page_count()}")

    problems = False
    missing = ctrl.store.rows_without_key()
    if missing:
        problems = True
        click.echo(
            f"Rows without a '{cfg.key_field}' value: "
            f"{', '.join(str(i) for i in missing)}",
            err=True,
        )
    duplicates = [k for k in ctrl.store.duplicate_keys() if k is not None]
    if duplicates:
        problems = True
        click.echo(
            f"Duplicate keys: {', '.join(str(k) for k in duplicates)}",
            err=True,
        )
    if problems:
        raise SystemExit(1)
    click.echo("OK")


if __name__ == "__main__":
    cli()
