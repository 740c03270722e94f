import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn

from oasforge import __version__
from oasforge.codegen.codegen import Codegen
from oasforge.config import get_config
from oasforge.exceptions import OasForgeError

console = Console()
app = typer.Typer(
    name='oasforge',
    help='Generate Python code from OpenAPI documents',
    no_args_is_help=True,
)


@app.command()
def generate(
    config: Annotated[
        str | None,
        typer.Option(
            '--config', '-c', help='Path to configuration file (YAML or JSON)'
        ),
    ] = None,
    verbose: Annotated[
        bool, typer.Option('--verbose', '-v', help='Show debug logging')
    ] = False,
) -> None:
    """Generate code from configuration.

    If no config file is specified, will look for oasforge.yaml or
    oasforge.yml in the current directory, then for a [tool.oasforge]
    table in pyproject.toml.

    Examples:
        oasforge generate
        oasforge generate --config my-config.yaml
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(message)s',
        handlers=[RichHandler(console=console, show_path=False)],
    )

    try:
        build_config = get_config(config)
    except FileNotFoundError:
        console.print('[red]Error:[/red] no configuration file found')
        raise typer.Exit(1)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn('[progress.description]{task.description}'),
            console=console,
        ) as progress:
            task = progress.add_task(
                f'Generating code for {build_config.input.path} '
                f'in {build_config.output.path}...',
                total=None,
            )
            result = Codegen(build_config).generate()
            progress.update(task, description='Code generation completed!')
    except OasForgeError as e:
        console.print(f'[red]Error:[/red] {e}')
        raise typer.Exit(1)

    console.print('[dim]Generated files:[/dim]')
    for path in result.files:
        console.print(f'  - {path}')

    for error in result.operation_errors:
        console.print(f'[yellow]Skipped:[/yellow] {error}')

    failed = [hook for hook in result.hook_results if not hook.ok]
    for hook in failed:
        console.print(f'[yellow]Hook failed:[/yellow] {hook.error}')


@app.command()
def version() -> None:
    """Show the version of oasforge."""
    console.print(f'oasforge version: {__version__}')


if __name__ == '__main__':
    app()
