"""Click entry point — all commands."""

import sys
from dataclasses import asdict

import click
import yaml

from popen_bridge import __version__, process
from popen_bridge.config import clamp_verbose, load_config
from popen_bridge.log import Log


def _load(config_file):
    try:
        return load_config(config_file)
    except (ValueError, yaml.YAMLError) as e:
        Log().error(f"invalid config: {e}")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="popen-bridge")
def main():
    """Pipe data through an external command and collect its output."""


@main.command(
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False}
)
@click.option("--capacity", type=click.IntRange(min=1), default=None, help="Maximum output bytes")
@click.option(
    "--input",
    "input_file",
    type=click.File("rb"),
    default="-",
    help="Read input from FILE instead of stdin",
)
@click.option("--verbose", "-v", count=True, help="More diagnostics on stderr (repeatable)")
@click.option("--config", "config_file", default=None, help="Config file path")
@click.argument("command")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def run(capacity, input_file, verbose, config_file, command, args):
    """Run COMMAND with the input on its stdin and print what it writes."""
    config = _load(config_file)
    log = Log(verbose=clamp_verbose(config.verbose + verbose))
    if capacity is None:
        capacity = config.capacity

    data = input_file.read()
    result = process.transform(command, [command, *args], data, capacity, log)
    if result.returncode < 0:
        log.error(process.describe_failure(command, result.returncode))
        sys.exit(-result.returncode)

    out = sys.stdout.buffer
    out.write(result.output)
    out.flush()


@main.command()
@click.option("--config", "config_file", default=None, help="Config file path")
def config(config_file):
    """Show the effective configuration."""
    settings = {"popen-bridge": asdict(_load(config_file))}
    click.echo(yaml.safe_dump(settings, sort_keys=False), nl=False)


if __name__ == "__main__":
    main()
