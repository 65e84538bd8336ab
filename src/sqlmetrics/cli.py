#!/usr/bin/env python3
"""Command line entry point for the SQL metrics collector."""
import pathlib
import sys
import time
from typing import Optional
from typing_extensions import Annotated

import typer

from sqlmetrics.collector import Collector
from sqlmetrics.common.logger import configure_logging, get_logger
from sqlmetrics.common.metrics import configure_metrics
from sqlmetrics.common.settings import settings
from sqlmetrics.config import SAMPLE_CONFIG, CollectorConfig, load_config
from sqlmetrics.console import print_error, print_report
from sqlmetrics.sinks import JsonLinesSink

logger = get_logger("cli")

app = typer.Typer(
    name="sqlmetrics",
    help="Turn SQL query results into tagged metrics.",
    no_args_is_help=True,
    add_completion=False,
)

ConfigOption = Annotated[Optional[pathlib.Path], typer.Option("--config", help="Path to collector config YAML")]


@app.callback()
def global_callback(
    env: Annotated[Optional[str], typer.Option("--env", "-e", help="Environment name; loads .env.<name>")] = None,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Logging level")] = None,
    json_logs: Annotated[bool, typer.Option("--json-logs", help="Emit logs as JSON")] = False,
):
    """
    SQL metrics collector.
    """
    if env:
        settings.configure_env(env)
    configure_logging(
        level=log_level or settings.log_level,
        json_format=json_logs or settings.log_json,
    )
    configure_metrics(settings.observability_exporter, settings.otlp_endpoint)


def _load(config: Optional[pathlib.Path]) -> CollectorConfig:
    if config is None:
        config = pathlib.Path(settings.config_path)
    try:
        return load_config(config)
    except (FileNotFoundError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(code=2)


def _build_collector(cfg: CollectorConfig) -> Collector:
    return Collector(
        servers=cfg.servers,
        queries=cfg.queries,
        result_by_row=cfg.result_by_row,
        preamble=cfg.preamble,
    )


@app.command()
def gather(
    config: ConfigOption = None,
    output: Annotated[Optional[pathlib.Path], typer.Option("--output", "-o", help="Write JSON lines here instead of stdout")] = None,
):
    """
    Run a single collection cycle and print the metrics as JSON lines.
    """
    collector = _build_collector(_load(config))
    try:
        if output:
            with output.open("a", encoding="utf-8") as stream:
                report = collector.gather(JsonLinesSink(stream))
        else:
            report = collector.gather(JsonLinesSink(sys.stdout))
    finally:
        collector.close()

    print_report(report)
    if report.all_failed:
        raise typer.Exit(code=1)


@app.command()
def run(
    config: ConfigOption = None,
    interval: Annotated[Optional[float], typer.Option(help="Seconds between cycles")] = None,
    cycles: Annotated[Optional[int], typer.Option(help="Stop after this many cycles")] = None,
):
    """
    Collect continuously, writing JSON lines to stdout.
    """
    if interval is None:
        interval = settings.collection_interval_sec

    collector = _build_collector(_load(config))
    sink = JsonLinesSink(sys.stdout)
    completed = 0
    try:
        while cycles is None or completed < cycles:
            started = time.monotonic()
            report = collector.gather(sink)
            sys.stdout.flush()
            print_report(report)
            completed += 1

            if cycles is not None and completed >= cycles:
                break
            time.sleep(max(0.0, interval - (time.monotonic() - started)))
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping collection")
    finally:
        collector.close()


@app.command("sample-config")
def sample_config():
    """
    Print a documented sample configuration.
    """
    typer.echo(SAMPLE_CONFIG, nl=False)


def main():
    app()

if __name__ == "__main__":
    main()
