from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

import typer

from sqltool.config import Settings, load_properties
from sqltool.dao import Dao
from sqltool.exceptions import SqltoolError
from sqltool.utils.logging import configure_logging

app = typer.Typer(help="sqltool CLI: run DSQL against configured datasources.")

ConfigOption = typer.Option(
    Path("sqltool.properties"),
    "--config",
    "-c",
    exists=True,
    dir_okay=False,
    help="Properties file with sqltool.* settings and datasources.",
)
DataSourceOption = typer.Option(None, "--datasource", "-d", help="Datasource name (default datasource if omitted).")
ParamOption = typer.Option(None, "--param", "-p", help="DSQL parameter as name=value; repeatable.")


def _params(pairs: Optional[List[str]]) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise typer.BadParameter(f"Expected name=value, got '{pair}'", param_hint="--param")
        params[name.strip()] = value
    return params


def _dao(config: Path) -> Dao:
    properties = load_properties(config)
    settings = Settings.from_properties(properties)
    configure_logging(level=settings.log_level, show_sql=settings.show_sql)
    return Dao.build(properties)


@app.command()
def info(config: Path = ConfigOption) -> None:
    """
    Show effective settings and configured datasources.
    """
    with _dao(config) as dao:
        settings = dao.settings
        typer.echo(
            f"showSql={settings.show_sql} batch={settings.default_batch_size} "
            f"basePackages={settings.base_packages or '-'} suffix={settings.suffix}"
        )
        for name in dao.registry.names():
            data_source = dao.registry[name]
            marker = " (default)" if data_source is dao.registry.default else ""
            typer.echo(
                f"{name}{marker}: dialect={data_source.dialect.name} "
                f"driver={data_source.driver.__name__} url={data_source.config.url}"
            )


@app.command()
def execute(
    dsql: str = typer.Argument(..., help="DSQL text or template id."),
    config: Path = ConfigOption,
    datasource: Optional[str] = DataSourceOption,
    param: Optional[List[str]] = ParamOption,
) -> None:
    """
    Run an insert/update/delete statement and print the affected row count.
    """
    with _dao(config) as dao:
        count = dao.execute_update(dsql, _params(param), datasource=datasource)
    typer.echo(json.dumps({"affected_rows": count}))


@app.command()
def select(
    dsql: str = typer.Argument(..., help="DSQL text or template id."),
    config: Path = ConfigOption,
    datasource: Optional[str] = DataSourceOption,
    param: Optional[List[str]] = ParamOption,
) -> None:
    """
    Run a query and print its rows as JSON.
    """
    with _dao(config) as dao:
        rows = dao.select(dict, dsql, _params(param), datasource=datasource)
    typer.echo(json.dumps(rows, indent=2, default=str))


def main() -> None:
    try:
        app()
    except SqltoolError as exc:
        typer.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
