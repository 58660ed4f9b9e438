"""Render configuration and ontology backend settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional


DEFAULT_ONTOLOGY_SETTINGS: dict[str, Any] = {
    "sparql_endpoint": "https://schema.gov.it/sparql",
    "timeout": 10.0,  # seconds
    "language": "en",
    "cache_size": 1024,  # memoized lookups and conversions kept per instance
}

# Environment variable → settings key
_ENV_SETTINGS = {
    "JSONSCHEMA_LD_SPARQL_ENDPOINT": ("sparql_endpoint", str),
    "JSONSCHEMA_LD_ONTOLOGY_TIMEOUT": ("timeout", float),
    "JSONSCHEMA_LD_ONTOLOGY_LANGUAGE": ("language", str),
    "JSONSCHEMA_LD_CACHE_SIZE": ("cache_size", int),
}

# camelCase keys used by the rendering layer
_RENDER_ALIASES = {
    "showExtensions": "show_extensions",
    "includeReadOnly": "include_read_only",
    "includeWriteOnly": "include_write_only",
    "expandDepth": "expand_depth",
    "defaultModelExpandDepth": "expand_depth",
    "isOAS3": "supports_composition",
    "maxDepth": "max_depth",
}


@dataclass(frozen=True)
class RenderConfig:
    """UI-level configuration supplied by the rendering layer."""

    show_extensions: bool = False
    include_read_only: bool = True
    include_write_only: bool = True
    expand_depth: int = 1
    # OAS3-style dialects support allOf/anyOf/oneOf/not and per-property deprecated
    supports_composition: bool = True
    max_depth: int = 64

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]] = None) -> "RenderConfig":
        """Build a config from snake_case or camelCase keys.

        Unknown keys are ignored so the rendering layer can pass its
        whole configuration object.
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in (mapping or {}).items():
            name = _RENDER_ALIASES.get(key, key)
            if name in known:
                kwargs[name] = value
        if "expand_depth" in kwargs:
            kwargs["expand_depth"] = int(kwargs["expand_depth"])
        if "max_depth" in kwargs:
            kwargs["max_depth"] = int(kwargs["max_depth"])
        return cls(**kwargs)


DEFAULT_RENDER_CONFIG = RenderConfig()


def ontology_settings(
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> dict[str, Any]:
    """Resolve ontology settings: defaults, then environment, then *overrides*."""
    env = os.environ if environ is None else environ
    from_env: dict[str, Any] = {}
    for var, (key, convert) in _ENV_SETTINGS.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            from_env[key] = convert(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid value for {var}: {raw!r}") from exc
    resolved = {**DEFAULT_ONTOLOGY_SETTINGS, **from_env, **(overrides or {})}
    if resolved["timeout"] is not None and resolved["timeout"] <= 0:
        raise ValueError(f"Ontology timeout must be positive, got: {resolved['timeout']}")
    if resolved["cache_size"] < 1:
        raise ValueError(f"Cache size must be at least 1, got: {resolved['cache_size']}")
    return resolved
