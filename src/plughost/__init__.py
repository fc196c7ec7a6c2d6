"""plughost -- An embeddable plugin runtime for chat applications.

This package discovers, instantiates, sandboxes, and orchestrates third-party
plugins that extend a chat host: content renderers, message transformers,
callable tools, and UI extensions. A misbehaving plugin is contained at every
entry point and never crashes the host.

Typical embedding::

    manager = PluginManager(host_config, store=JsonFileStore(path))
    await manager.register_all(iter_builtin_plugins())
    results = await manager.execute_hook("render.user-message-footer", ctx)

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware host configuration.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    outcome: Typed success/failure values returned by host mutators.
    output: stdout/stderr formatting system with Rich support.
    versioning: Semantic versions and compatibility ranges.
    plugins: The plugin runtime (manifest, executor, hooks, manager).
    store: Key-value persistence backends.
    builtin: Plugins bundled with the host.
"""

__version__ = "0.1.0"
