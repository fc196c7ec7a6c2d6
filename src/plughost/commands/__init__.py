"""CLI sub-commands for plughost.

* :mod:`~plughost.commands.plugins` -- ``list``, ``validate``, ``enable``,
  ``disable`` and ``hook``, registered directly on the root app.
* :mod:`~plughost.commands.config` -- the ``config`` group for editing a
  plugin's persisted settings.
* :mod:`~plughost.commands.host` -- shared helpers that stand up a
  :class:`~plughost.plugins.manager.PluginManager` for one invocation.
"""
