"""Tests for configuration loading and validation."""

import argparse

import pytest
import yaml

from config_loader import DEFAULT_CONFIG, ConfigLoader, get_nested, message_for_locale


def write_config(tmp_path, data):
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.safe_dump(data), encoding='utf-8')
    return str(path)


class TestLoad:
    """Loading YAML files."""

    def test_defaults_without_file(self):
        config = ConfigLoader.load()
        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG

    def test_file_values_merged_with_defaults(self, tmp_path):
        path = write_config(tmp_path, {'migration': {'virtual_wiki': 'de'}, 'export': {'sitename': 'Wiki DE'}})
        config = ConfigLoader.load(path)

        assert config['migration']['virtual_wiki'] == 'de'
        assert config['migration']['author_display_fallback'] == '127.0.0.1'
        assert config['export']['sitename'] == 'Wiki DE'
        assert config['export']['case'] == 'first-letter'

    def test_environment_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv('WIKI_SNAPSHOT', '/data/wiki.json')
        path = write_config(tmp_path, {'repository': {'snapshot_path': '${WIKI_SNAPSHOT}'}})
        assert ConfigLoader.load(path)['repository']['snapshot_path'] == '/data/wiki.json'

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader.load(str(tmp_path / 'missing.yaml'))


class TestValidate:
    """Validation rules."""

    def test_defaults_are_valid(self):
        ConfigLoader.validate(ConfigLoader.with_defaults({}))

    @pytest.mark.parametrize('override', [
        {'migration': {'virtual_wiki': ''}},
        {'migration': {'exclude_history': 'yes'}},
        {'migration': {'locale': 'not a locale'}},
        {'export': {'case': 'upper'}},
        {'namespaces': {'Project': 'Wikipedia'}},
        {'messages': {'de': 'Importiert'}},
        {'logging': {'level': 'LOUD'}},
    ])
    def test_invalid_values(self, override):
        with pytest.raises(ValueError):
            ConfigLoader.validate(ConfigLoader.with_defaults(override))

    def test_unsubstituted_environment_variable(self):
        config = ConfigLoader.with_defaults({'migration': {'virtual_wiki': '${UNSET_WIKI_VARIABLE}'}})
        with pytest.raises(ValueError, match='UNSET_WIKI_VARIABLE'):
            ConfigLoader.validate(config)


class TestMergeWithArgs:
    """CLI overrides."""

    def test_arguments_override_config(self):
        args = argparse.Namespace(
            virtual_wiki='fr',
            author_display='10.0.0.1',
            locale='fr_FR',
            exclude_history=True,
            record_import_version=None,
            progress=None,
            repository='other.json',
            log_file=None
        )
        config = ConfigLoader.merge_with_args(ConfigLoader.with_defaults({}), args)

        assert config['migration']['virtual_wiki'] == 'fr'
        assert config['migration']['author_display_fallback'] == '10.0.0.1'
        assert config['migration']['locale'] == 'fr_FR'
        assert config['migration']['exclude_history'] is True
        assert config['migration']['record_import_version'] is False
        assert config['repository']['snapshot_path'] == 'other.json'

    def test_missing_attributes_ignored(self):
        config = ConfigLoader.merge_with_args(ConfigLoader.with_defaults({}), argparse.Namespace())
        assert config == DEFAULT_CONFIG


class TestHelpers:
    def test_get_nested(self):
        config = {'a': {'b': {'c': 1}}}
        assert get_nested(config, 'a.b.c') == 1
        assert get_nested(config, 'a.x', 'default') == 'default'

    def test_message_for_locale(self):
        config = {'messages': {'en': 'Imported from {source}', 'de': 'Importiert aus {source}', 'pt_BR': 'Importado de {source}'}}
        assert message_for_locale(config, 'de_DE') == 'Importiert aus {source}'
        assert message_for_locale(config, 'pt-BR') == 'Importado de {source}'
        assert message_for_locale(config, 'ja') == 'Imported from {source}'
        assert message_for_locale({}, None) == 'Imported from {source}'
