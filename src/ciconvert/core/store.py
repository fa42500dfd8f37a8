"""Registry of unique identifiers issued during one conversion."""

import logging

logger = logging.getLogger(__name__)


class Identifiers:
    """
    Set of names already handed out within a single conversion.

    Names are never released; a new registry is created for every
    top-level conversion call.
    """

    def __init__(self) -> None:
        self._names: set[str] = set()

    def register(self, name: str) -> bool:
        """
        Register a name.

        Returns:
            True if the name was free and is now taken, False if it was
            already in use.
        """
        if name in self._names:
            return False
        self._names.add(name)
        return True

    def generate(self, *candidates: str | None) -> str:
        """
        Generate a unique name from the first non-empty candidate.

        The base name is returned when unused, otherwise the base name with
        the lowest free numeric suffix (``base0``, ``base1``, ...).
        """
        base = next((c for c in candidates if c), "")
        if self.register(base):
            return base
        index = 0
        while True:
            name = f"{base}{index}"
            if self.register(name):
                logger.debug(f"Identifier '{base}' in use, generated '{name}'")
                return name
            index += 1

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)
