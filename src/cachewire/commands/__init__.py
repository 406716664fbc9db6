"""Built-in CLI sub-commands for cachewire.

* :mod:`~cachewire.commands.fetch` -- perform one request through
  :class:`~cachewire.transport.CachingTransport`.
* :mod:`~cachewire.commands.cache` -- compute cache keys and inspect
  stored records.
* :mod:`~cachewire.commands.config` -- view and initialise the global
  configuration.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``config``) or a plain callback function
registered directly on the root app (for single commands like ``fetch``).
"""
