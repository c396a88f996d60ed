"""Secret mappings and the mapping registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from .constants import SECRET_TYPE_OPAQUE
from .utils.errors import ConfigurationError
from .utils.sharding import in_bucket


@dataclass(frozen=True)
class SecretMapping:
    """A declared Vault path to Kubernetes Secret association."""

    source_path: str
    destination_namespace: str
    destination_name: str
    secret_type: str = SECRET_TYPE_OPAQUE
    mount: str | None = None

    @property
    def source_ref(self) -> str:
        """Source identity: the path, qualified by its KV mount when one is set."""
        return f"{self.mount}:{self.source_path}" if self.mount else self.source_path

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the mapping: (namespace, name) of the destination."""
        return (self.destination_namespace, self.destination_name)

    def validate(self) -> None:
        """Validate required fields.

        Raises:
            ConfigurationError: If a required field is missing
        """
        if not self.source_path:
            raise ConfigurationError("path is required")
        if not self.destination_namespace:
            raise ConfigurationError("destination_namespace is required")
        if not self.destination_name:
            raise ConfigurationError("destination_name is required")

    def __str__(self) -> str:
        return f"{self.source_ref} -> {self.destination_namespace}/{self.destination_name}"


def create_mapping_from_spec(spec: dict[str, Any]) -> SecretMapping:
    """Create a validated mapping from a configuration entry.

    The source path is taken from ``path`` (or ``source_path``), or from the
    legacy ``name`` field. An optional ``mount`` names the KV mount to read
    from instead of the configured default.

    Args:
        spec: One entry of the ``secrets`` list

    Returns:
        Validated SecretMapping

    Raises:
        ConfigurationError: If the entry is not a mapping or misses a field
    """
    if not isinstance(spec, dict):
        raise ConfigurationError(f"secret mapping must be a mapping, got {type(spec).__name__}")

    mount = str(spec.get("mount") or "").strip("/") or None
    source_path = spec.get("path") or spec.get("source_path") or ""
    if not source_path and (mount or spec.get("name")):
        if not mount:
            raise ConfigurationError("mount is required")
        source_path = spec.get("name") or ""
        if not str(source_path).strip("/"):
            raise ConfigurationError("name is required")

    mapping = SecretMapping(
        source_path=str(source_path).strip("/"),
        destination_namespace=str(spec.get("destination_namespace") or ""),
        destination_name=str(spec.get("destination_name") or ""),
        secret_type=str(spec.get("type") or SECRET_TYPE_OPAQUE),
        mount=mount,
    )
    mapping.validate()
    return mapping


class MappingRegistry:
    """Validated, read-only collection of secret mappings.

    Built once at startup; safe to read from several tasks and threads.
    """

    def __init__(self, mappings: Iterable[SecretMapping]) -> None:
        items = tuple(mappings)
        index: dict[tuple[str, str], SecretMapping] = {}
        for mapping in items:
            mapping.validate()
            if mapping.key in index:
                namespace, name = mapping.key
                raise ConfigurationError(
                    f"duplicate destination {namespace}/{name} "
                    f"(paths {index[mapping.key].source_path!r} and {mapping.source_path!r})"
                )
            index[mapping.key] = mapping
        self._mappings = items
        self._index = index

    @classmethod
    def from_specs(cls, specs: Iterable[dict[str, Any]]) -> MappingRegistry:
        """Build a registry from raw configuration entries."""
        return cls(create_mapping_from_spec(spec) for spec in specs)

    def __iter__(self) -> Iterator[SecretMapping]:
        return iter(self._mappings)

    def __len__(self) -> int:
        return len(self._mappings)

    def lookup(self, namespace: str, name: str) -> SecretMapping | None:
        """Find the mapping whose destination is namespace/name."""
        return self._index.get((namespace, name))

    def for_shard(self, index: int, count: int) -> MappingRegistry:
        """Return the mappings whose destination name falls in this shard."""
        if count <= 1:
            return self
        return MappingRegistry(m for m in self._mappings if in_bucket(m.destination_name, index, count))
