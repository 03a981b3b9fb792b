"""Numeric process exit codes returned by :meth:`cliapp.app.App.execute`.

Every failure, whether a rejected argument, an unknown flag, a bad config
file or an exception from the run function, exits with
:data:`EXIT_GENERIC_FAILURE`. The message on stderr tells them apart.

Example::

    $ iam-apiserver --bogus
    Error: No such option: --bogus
    $ echo $?
    1
"""

EXIT_SUCCESS = 0
"""The command completed successfully (also used by ``--version``)."""

EXIT_GENERIC_FAILURE = 1
"""The command, its arguments, its options, or the user callback failed."""
