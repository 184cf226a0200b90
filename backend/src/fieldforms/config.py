"""Application settings loaded from YAML.

Example ``fieldforms.yaml``::

    locale: en
    translations:
      en:
        patient_id.unique: Patient ID must be unique.
    forms:
      R:
        validations:
          - property: patient_id
            rule: regex('^[0-9]{5}$')
            message:
              - content: Patient ID must be 5 numbers.
                locale: en
          - property: patient_id
            rule: unique('patient_id')
            translation_key: patient_id.unique
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from fieldforms.store.config import StoreConfig
from fieldforms.validation.messages import DEFAULT_LOCALE
from fieldforms.validation.types import ValidationSpec


class SettingsError(Exception):
    """The settings file is missing or malformed."""


@dataclass
class Settings:
    """Validation settings.

    Attributes:
        default_locale: Locale used when a report does not specify one
        translations: Catalogue of ``{locale: {key: text}}``
        forms: Form code to its declared validations
        database_url: Store URL from the settings file, if any
    """

    default_locale: str = DEFAULT_LOCALE
    translations: dict[str, dict[str, str]] = field(default_factory=dict)
    forms: dict[str, list[ValidationSpec]] = field(default_factory=dict)
    database_url: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Create Settings from a parsed YAML/JSON dict."""
        forms: dict[str, list[ValidationSpec]] = {}
        for code, form in (data.get("forms") or {}).items():
            entries = form.get("validations", []) if isinstance(form, dict) else form
            forms[str(code)] = [ValidationSpec.from_dict(entry) for entry in entries or []]

        return cls(
            default_locale=data.get("locale") or DEFAULT_LOCALE,
            translations=data.get("translations") or {},
            forms=forms,
            database_url=data.get("database_url"),
        )

    @classmethod
    def from_yaml(cls, path: Path | str) -> Settings:
        """Load settings from a YAML file.

        Raises:
            SettingsError: If the file cannot be read or is not a mapping
        """
        path = Path(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise SettingsError(f"Cannot read settings file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise SettingsError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise SettingsError(f"Settings file {path} must contain a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> Settings:
        """Load settings using environment variables.

        Resolution order for the settings file:
        1. FIELDFORMS_CONFIG env var
        2. {base_path}/fieldforms.yaml if it exists
        3. Built-in defaults (no forms)
        """
        config_path = os.environ.get("FIELDFORMS_CONFIG")
        if config_path:
            return cls.from_yaml(config_path)

        if base_path and (base_path / "fieldforms.yaml").exists():
            return cls.from_yaml(base_path / "fieldforms.yaml")

        return cls()

    def validations_for(self, form: str) -> list[ValidationSpec]:
        """Validations declared for a form code (empty if none)."""
        return self.forms.get(form, [])

    def store_config(self, base_path: Path | None = None) -> StoreConfig:
        """Store URL: environment first, then the settings file, then the default."""
        if (
            os.environ.get("DATABASE_URL")
            or os.environ.get("FIELDFORMS_DB_PATH")
            or not self.database_url
        ):
            return StoreConfig.from_env(base_path)
        return StoreConfig(url=self.database_url)
