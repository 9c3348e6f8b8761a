"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~datamirror.exceptions.MirrorError` subclass.
Shell scripts wrapping ``datamirror`` can inspect the exit code to decide
whether a failure is worth retrying without parsing stderr.

Example::

    $ datamirror get https://example.test/data.json
    $ echo $?
    6   # EXIT_TRANSPORT_ERROR -- the resource could not be retrieved
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments (e.g. a malformed URL)."""

EXIT_IDENTITY_ERROR = 3
"""The current operating-system user could not be determined."""

EXIT_TRANSPORT_ERROR = 6
"""The resource could not be retrieved and no local copy exists."""

EXIT_DECODE_ERROR = 7
"""The cached bytes could not be decoded as the requested format."""

EXIT_PERMISSION_ERROR = 8
"""A cache file could not be accessed or its permissions restricted."""

EXIT_INTERRUPTED = 130
"""The command was interrupted with Ctrl-C (128 + SIGINT)."""
