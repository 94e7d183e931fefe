"""Known settings keys, used to report typos in ``settings.json``."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping

# A section maps to the set of keys it accepts; ``None`` accepts any value.
_ALLOWED_STRUCTURE: Dict[str, Any] = {
    "scan": {
        "workers",
        "skip_hidden",
        "follow_symlinks",
        "ignore",
        "include_loose_media",
        "readme_max_bytes",
    },
    "catalog": {"write_attempts", "retry_delay_s"},
    "storage": {"backend", "path", "memory_name"},
    "api": {"host", "port", "api_key", "cors_origins", "default_limit", "max_page_size"},
    "working_dir": None,
    "version": None,
}


@dataclass(slots=True)
class SettingsValidator:
    schema: Mapping[str, Any]

    def unknown_keys(self, payload: Mapping[str, Any]) -> Iterable[str]:
        """Return dotted names of keys not present in the schema, sorted."""

        unknown = []
        for key, value in payload.items():
            if key not in self.schema:
                unknown.append(key)
                continue
            allowed = self.schema[key]
            if allowed is None or not isinstance(value, Mapping):
                continue
            unknown.extend(f"{key}.{sub}" for sub in value if sub not in allowed)
        return sorted(unknown)


SETTINGS_VALIDATOR = SettingsValidator(_ALLOWED_STRUCTURE)

__all__ = ["SETTINGS_VALIDATOR", "SettingsValidator"]
