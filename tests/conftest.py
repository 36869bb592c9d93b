"""Shared fixtures for the migration tests."""

from pathlib import Path

import pytest

from config_loader import ConfigLoader
from converters import NamespaceTranslator, default_namespaces
from orchestrator import MigrationOrchestrator
from repository import InMemoryTopicRepository

DATA_DIR = Path(__file__).parent / 'data'


@pytest.fixture
def data_dir() -> Path:
    return DATA_DIR


@pytest.fixture
def config():
    return ConfigLoader.with_defaults({})


@pytest.fixture
def repository():
    return InMemoryTopicRepository()


@pytest.fixture
def translator():
    return NamespaceTranslator(default_namespaces())


@pytest.fixture
def orchestrator(config, repository):
    return MigrationOrchestrator(config, repository)
