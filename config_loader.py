"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict, List, Optional

import yaml

DEFAULT_CONFIG: Dict[str, Any] = {
    'migration': {
        'virtual_wiki': 'en',
        'author_display_fallback': '127.0.0.1',
        'locale': 'en_US',
        'exclude_history': False,
        'record_import_version': False,
        'show_progress': False
    },
    'repository': {
        'snapshot_path': './wiki-repository.json'
    },
    'export': {
        'sitename': 'Wiki',
        'base_url': None,
        'generator': 'wiki-topic-migrator',
        'case': 'first-letter'
    },
    'namespaces': {},
    'messages': {
        'en': 'Imported from {source}'
    },
    'logging': {
        'level': None,
        'file': None
    }
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Values missing from the file are taken from DEFAULT_CONFIG. Without a
        path the defaults alone are returned.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if config_path is None:
            return copy.deepcopy(DEFAULT_CONFIG)

        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        config_data = cls._substitute_env_vars_recursive(config_data)

        return cls.with_defaults(config_data)

    @classmethod
    def with_defaults(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of config with missing sections and keys filled in."""
        return _deep_merge(DEFAULT_CONFIG, config)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        cls._validate_required_field(config, 'migration.virtual_wiki')

        fallback = get_nested(config, 'migration.author_display_fallback')
        if fallback is not None and not isinstance(fallback, str):
            raise ValueError("migration.author_display_fallback must be a string")

        for flag in ('exclude_history', 'record_import_version', 'show_progress'):
            value = get_nested(config, f'migration.{flag}', False)
            if not isinstance(value, bool):
                raise ValueError(f"migration.{flag} must be a boolean")

        locale = get_nested(config, 'migration.locale', 'en_US')
        if not isinstance(locale, str) or not re.match(r'^[A-Za-z]{2,3}([_-][A-Za-z0-9]+)*$', locale):
            raise ValueError(f"migration.locale '{locale}' is not a valid locale identifier")

        case = get_nested(config, 'export.case', 'first-letter')
        if case not in ('first-letter', 'case-sensitive'):
            raise ValueError("export.case must be 'first-letter' or 'case-sensitive'")

        namespaces = get_nested(config, 'namespaces', {}) or {}
        if not isinstance(namespaces, dict):
            raise ValueError("namespaces must map internal namespace names to alias lists")
        for name, aliases in namespaces.items():
            if not isinstance(aliases, list) or not all(isinstance(a, str) and a for a in aliases):
                raise ValueError(f"namespaces.{name} must be a list of non-empty strings")

        messages = get_nested(config, 'messages', {}) or {}
        if not isinstance(messages, dict):
            raise ValueError("messages must map language codes to comment templates")
        for language, template in messages.items():
            if not isinstance(template, str) or '{source}' not in template:
                raise ValueError(f"messages.{language} must be a string containing '{{source}}'")

        level = get_nested(config, 'logging.level')
        if level is not None and str(level).upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f"logging.level '{level}' is not a valid log level")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        for section in ('migration', 'repository', 'logging'):
            merged.setdefault(section, {})

        if getattr(args, 'virtual_wiki', None):
            merged['migration']['virtual_wiki'] = args.virtual_wiki

        if getattr(args, 'author_display', None):
            merged['migration']['author_display_fallback'] = args.author_display

        if getattr(args, 'locale', None):
            merged['migration']['locale'] = args.locale

        if getattr(args, 'exclude_history', None) is not None:
            merged['migration']['exclude_history'] = args.exclude_history

        if getattr(args, 'record_import_version', None) is not None:
            merged['migration']['record_import_version'] = args.record_import_version

        if getattr(args, 'progress', None) is not None:
            merged['migration']['show_progress'] = args.progress

        if getattr(args, 'repository', None):
            merged['repository']['snapshot_path'] = args.repository

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config_section: dict, field: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config_section, field)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field}")

        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ValueError(
                f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "migration.virtual_wiki")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    value = config

    for key in path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


def message_for_locale(config: Dict[str, Any], locale: Optional[str]) -> str:
    """Pick the import comment template for a locale such as 'de_DE'."""
    messages = get_nested(config, 'messages', {}) or {}
    candidates: List[str] = []
    if locale:
        normalized = locale.replace('-', '_')
        candidates.append(normalized)
        candidates.append(normalized.split('_')[0].lower())
    candidates.append('en')
    for candidate in candidates:
        if candidate in messages:
            return messages[candidate]
    return DEFAULT_CONFIG['messages']['en']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


__all__ = ['ConfigLoader', 'DEFAULT_CONFIG', 'get_nested', 'message_for_locale']
