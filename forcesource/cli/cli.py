import json
import sys
import time

import click
from rich.console import Console
from rich.markup import escape

import forcesource
from forcesource.core.exceptions import ForceSourceException, ForceSourceUsageError
from forcesource.source.mdapi_convert import MdapiConvertApi, MdapiConvertOptions
from forcesource.source.source_convert import SourceConvertApi, SourceConvertOptions
from forcesource.source.status import (
    SourceStatusApi,
    StatusOptions,
    clear_source_tracking,
    reset_source_tracking,
)

from .logger import init_logger
from .runtime import CliRuntime, pass_runtime
from .ui import rows_table

USAGE_ERRORS = (ForceSourceUsageError, click.UsageError)

CONVERT_COLUMNS = ["fullName", "type", "filePath"]
MDAPI_CONVERT_COLUMNS = ["fullName", "type", "filePath", "state"]
STATUS_COLUMNS = ["state", "fullName", "type", "filePath", "isConflict"]


def main(args=None):
    """Main forcesource CLI entry point.

    This wraps the `click` library in order to do some initialization and centralized error handling.
    """
    args = list(args or sys.argv)
    debug = "--debug" in args
    if debug:
        args.remove("--debug")

    init_logger(debug=debug)
    try:
        cli(args[1:], standalone_mode=False)
    except click.Abort:  # Keyboard interrupt
        Console(stderr=True).print("\n[red bold]Aborted!")
        sys.exit(1)
    except (ForceSourceException, click.ClickException) as e:
        handle_exception(e, debug)
        sys.exit(1)


def handle_exception(error, debug=False):
    """Displays the error message back to the user, with the traceback in debug mode."""
    error_console = Console(stderr=True)
    if isinstance(error, click.ClickException):
        error_console.print(f"[red bold]Error: {escape(error.format_message())}")
    else:
        error_console.print(f"[red bold]Error: {escape(str(error))}")
    if debug and not isinstance(error, USAGE_ERRORS):
        error_console.print_exception()


def echo_rows(rows, columns, as_json, title=None, empty_message="No results"):
    if as_json:
        click.echo(json.dumps(rows, indent=4))
    elif rows:
        rows_table(rows, columns, title=title).echo()
    else:
        click.echo(empty_message)


def log_unsupported_mime_types(mime_types):
    if mime_types:
        click.echo(
            "The following static resource mime types are not supported and were left as is: "
            + ", ".join(sorted(set(mime_types))),
            err=True,
        )


username_option = click.option(
    "-u",
    "--username",
    envvar="FORCESOURCE_USERNAME",
    help="Username of the target org. Defaults to $FORCESOURCE_USERNAME.",
)
json_option = click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")


@click.group("forcesource", help="Convert and track Salesforce DX source")
@click.version_option(forcesource.__version__, prog_name="forcesource")
@click.option(
    "--project-dir",
    type=click.Path(file_okay=False),
    help="Path inside the SFDX project. Defaults to the current directory.",
)
@click.pass_context
def cli(ctx, project_dir):
    if ctx.obj is None:
        ctx.obj = CliRuntime(project_dir)


# Source format


@cli.group("source", help="Commands for source format projects")
def source():
    pass


@source.command(name="convert", help="Convert source format into Metadata API format")
@click.option("-r", "--root-dir", help="Source directory to convert. Defaults to all package directories.")
@click.option("-d", "--output-dir", help="Output directory. Defaults to metadataPackage_<timestamp>.")
@click.option("-n", "--package-name", help="Name of the package written to package.xml.")
@click.option("-x", "--manifest", help="Path to a package.xml selecting what to convert.")
@click.option("-p", "--source-path", "source_paths", multiple=True, help="Source path to convert.")
@click.option("-m", "--metadata", help="Comma separated Type or Type:Name list to convert.")
@json_option
@pass_runtime
def source_convert(runtime, root_dir, output_dir, package_name, manifest, source_paths, metadata, as_json):
    options = SourceConvertOptions.parse_data(
        {
            "root_dir": root_dir,
            "output_dir": output_dir or f"metadataPackage_{int(time.time() * 1000)}",
            "package_name": package_name,
            "manifest": manifest,
            "source_paths": list(source_paths),
            "metadata": metadata,
        }
    )
    context = runtime.get_context()
    rows = SourceConvertApi(context).do_convert(options)
    log_unsupported_mime_types(options.unsupported_mime_types)
    echo_rows(rows, CONVERT_COLUMNS, as_json, title="Converted Source")
    if not as_json:
        click.echo(f"Source was successfully converted to Metadata API format and written to {options.output_dir}")


# Metadata API format


@cli.group("mdapi", help="Commands for Metadata API format directories")
def mdapi():
    pass


@mdapi.command(name="convert", help="Convert Metadata API format into source format")
@click.option("-r", "--root-dir", required=True, help="Directory holding the package.xml to convert.")
@click.option("-d", "--output-dir", help="Output directory. Defaults to the default package directory.")
@click.option("-x", "--manifest", help="Path to a package.xml selecting what to convert.")
@click.option("-m", "--metadata", multiple=True, help="Type or Type:Name to convert.")
@click.option("-p", "--metadata-path", "metadata_paths", multiple=True, help="Path to convert.")
@json_option
@pass_runtime
def mdapi_convert(runtime, root_dir, output_dir, manifest, metadata, metadata_paths, as_json):
    options = MdapiConvertOptions.parse_data(
        {
            "root_dir": root_dir,
            "output_dir": output_dir,
            "manifest": manifest,
            "metadata": list(metadata),
            "metadata_paths": list(metadata_paths),
        }
    )
    context = runtime.get_context()
    rows = MdapiConvertApi(context).convert_source(options)
    log_unsupported_mime_types(options.unsupported_mime_types)
    echo_rows(rows, MDAPI_CONVERT_COLUMNS, as_json, title="Converted Source")


# Source tracking


@source.command(name="status", help="List local and remote changes since the last sync")
@click.option("-l", "--local", "local_only", is_flag=True, help="List only local changes.")
@click.option("-r", "--remote", "remote_only", is_flag=True, help="List only remote changes.")
@username_option
@json_option
@pass_runtime
def source_status(runtime, local_only, remote_only, username, as_json):
    if local_only and remote_only:
        raise click.UsageError("Pass at most one of --local and --remote.")
    options = StatusOptions(local=not remote_only, remote=not local_only)
    context = runtime.get_context(username, require_org=True)
    max_revision = runtime.get_max_revision(context) if options.remote else None
    status = SourceStatusApi(context, max_revision).do_status(options)

    if as_json:
        click.echo(json.dumps({"local": status.local_changes, "remote": status.remote_changes}, indent=4))
        return
    if options.local:
        echo_rows(status.local_changes, STATUS_COLUMNS, False, "Local Changes", "No local changes found.")
    if options.remote:
        echo_rows(status.remote_changes, STATUS_COLUMNS, False, "Remote Changes", "No remote changes found.")


@source.group("tracking", help="Commands for the local source tracking files")
def tracking():
    pass


@tracking.command(name="reset", help="Mark the workspace and the org as in sync")
@click.option("--revision", type=int, help="Revision to reset to. Defaults to the org's latest.")
@username_option
@pass_runtime
def tracking_reset(runtime, revision, username):
    context = runtime.get_context(username, require_org=True)
    revision = reset_source_tracking(context, runtime.get_max_revision(context), revision)
    click.echo(f"Reset local tracking files for {context.username} to revision {revision}.")


@tracking.command(name="clear", help="Delete the local source tracking files")
@click.option("--no-prompt", is_flag=True, help="Do not ask for confirmation.")
@username_option
@pass_runtime
def tracking_clear(runtime, no_prompt, username):
    context = runtime.get_context(username, require_org=True)
    if not no_prompt:
        click.confirm(f"Delete the source tracking files of {context.username}?", abort=True)
    removed = clear_source_tracking(context)
    click.echo(f"Cleared {len(removed)} local tracking files for {context.username}.")
