"""Exception hierarchy for notios."""

from __future__ import annotations


class NotiosError(Exception):
    """Base class for all notios errors."""


class InternalInvariantError(NotiosError):
    """A programming defect: an internal invariant was violated.

    Never triggered by external input; not recoverable.
    """


class KeymappingError(NotiosError):
    """Keymapping table cannot be turned into a trie.

    Raised at construction time when:
    - A key sequence has zero length
    - A sequence passes through or ends on a node already bound to an action
    """


class ConfigError(NotiosError):
    """Configuration is structurally valid YAML but semantically wrong.

    Raised when:
    - A keymapping names an unknown page or action
    - A key descriptor cannot be parsed
    """
