"""Secret values used for remote calls."""

from collections.abc import Mapping


class SecureCredentials:
    """
    Read-only view over secret values keyed by env var name.

    A merged view prefers the override layer whenever it defines a key and
    falls back to the primary layer otherwise. An empty string counts as
    defined, so an empty override hides the primary value; provisioning
    treats empty secrets as missing. Nothing here writes secrets back to
    disk; runtime overrides live only as long as the process.
    """

    def __init__(self, values: Mapping[str, str] | None = None, fallback: "SecureCredentials | None" = None):
        self._values = {k: v for k, v in (values or {}).items() if v is not None}
        self._fallback = fallback

    @classmethod
    def from_env_vars(cls, env_vars: Mapping[str, str | None]) -> "SecureCredentials":
        """Wrap a plain mapping, e.g. the output of dotenv_values()."""
        return cls({k: v for k, v in env_vars.items() if v is not None})

    def merge(self, override: "SecureCredentials") -> "SecureCredentials":
        """Return a view where `override` wins on key collision."""
        return SecureCredentials(override._all(), fallback=self)

    def get(self, key: str) -> str | None:
        if key in self._values:
            return self._values[key]
        if self._fallback is not None:
            return self._fallback.get(key)
        return None

    def keys(self) -> list[str]:
        return sorted(self._all())

    def _all(self) -> dict[str, str]:
        merged = self._fallback._all() if self._fallback is not None else {}
        merged.update(self._values)
        return merged

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._all())

    def __repr__(self) -> str:
        return f"SecureCredentials(keys={self.keys()})"
