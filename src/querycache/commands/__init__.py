"""Built-in CLI sub-commands for querycache.

* :mod:`~querycache.commands.records` -- ``list``, ``get``, ``create``,
  ``update``, ``delete`` and ``import``, registered on the root app.
* :mod:`~querycache.commands.profile` -- the ``profile`` group.
* :mod:`~querycache.commands.config` -- the ``config`` group.
"""
