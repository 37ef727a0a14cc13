"""Token registry: the arena that owns every ProcNode.

Tokens are opaque, process-wide unique identifiers. They are handed to spawned
processes through the environment so a child can register nodes back into
the tree. Entries are never removed for the life of the program.

Tokens are drawn at random and rejected on collision. Termination is
probabilistic, but with 48 random bits per token and a registry that holds at
most a few thousand nodes a retry is practically never needed.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator

from notios.proc.types import ProcNode

TOKEN_LENGTH = 12


def random_token() -> str:
    """Generate a random 12-hex-digit token."""
    return uuid.uuid4().hex[:TOKEN_LENGTH]


class TokenRegistry:
    """Mapping from token to node, written once per node and read many times."""

    def __init__(self, token_factory: Callable[[], str] = random_token) -> None:
        self._nodes: dict[str, ProcNode] = {}
        self._token_factory = token_factory

    def new_token(self) -> str:
        """Draw a token not present in the registry."""
        while True:
            token = self._token_factory()
            if token not in self._nodes:
                return token

    def register(self, node: ProcNode) -> None:
        """Add a node under its token.

        Raises:
            ValueError: If the token is already taken.
        """
        if node.token in self._nodes:
            raise ValueError(f"Token already registered: {node.token}")
        self._nodes[node.token] = node

    def get(self, token: str) -> ProcNode | None:
        return self._nodes.get(token)

    def __getitem__(self, token: str) -> ProcNode:
        return self._nodes[token]

    def __contains__(self, token: object) -> bool:
        return token in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[ProcNode]:
        return iter(self._nodes.values())
