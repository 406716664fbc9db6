"""Config commands -- view and initialise configuration.

Provides the ``cachewire config`` sub-command group. ``show`` prints the
effective configuration after every precedence layer has been applied;
``init`` writes a default global config file to edit by hand.
"""

from __future__ import annotations

import typer

from cachewire.output import format_response, info, success, warning


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration.

    Merges the global config file, ``./cachewire.json``, ``CACHEWIRE_*``
    environment variables and defaults, then prints the result.

    Example::

        cachewire config show
        cachewire --json config show
    """
    from cachewire.config import default_cache_root, get_config_dir, resolve_config

    config = resolve_config()
    info(f"Config directory: {get_config_dir()}")
    info(f"Cache directory: {default_cache_root(config)}")
    format_response(config.model_dump(mode="json"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file."),
) -> None:
    """Write a default global config file.

    Example::

        cachewire config init
        cachewire config init --force
    """
    from cachewire.config import global_config_path, save_global_config
    from cachewire.models import TransportConfig

    existing = global_config_path()
    if existing.is_file() and not force:
        warning(f"{existing} already exists; pass --force to overwrite it.")
        raise typer.Exit()

    path = save_global_config(TransportConfig())
    success(f"Wrote default configuration to {path}")
