"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~plughost.exceptions.PlugHostError` subclass.
External tooling (CI scripts, shell wrappers) can inspect the exit code to
determine the failure class without parsing stderr.

Example::

    $ plughost validate ./my-plugin/plugin.json
    $ echo $?
    7   # EXIT_MANIFEST_ERROR -- the manifest failed validation
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_NOT_FOUND = 4
"""The requested plugin was not registered."""

EXIT_LIFECYCLE_ERROR = 5
"""A plugin lifecycle transition was refused or a lifecycle method failed."""

EXIT_CONFIG_VALIDATION_ERROR = 6
"""A plugin configuration value failed its field constraints."""

EXIT_MANIFEST_ERROR = 7
"""A plugin manifest could not be parsed or failed validation."""

EXIT_PLUGIN_ERROR = 10
"""Plugin code failed to evaluate, construct, or run."""
