"""Tests for the migration orchestrator and its reports."""

import json

import pytest

from errors import MigrationError
from models import ExportState, ImportStage
from orchestrator import MigrationOrchestrator, MigrationReport
from repository import InMemoryTopicRepository


def version_summary(repository, virtual_wiki):
    """Comparable view of every topic's history."""
    summary = {}
    for name in repository.topic_names(virtual_wiki):
        topic = repository.lookup_topic(virtual_wiki, name)
        summary[name] = [
            (v.author.display, v.edit_date, v.version_content, v.edit_comment)
            for v in repository.get_topic_history(topic)
        ]
    return summary


class TestImportFromFile:
    """Import flow."""

    def test_returns_topic_names(self, orchestrator, data_dir):
        names = orchestrator.import_from_file(data_dir / 'mediawiki-two-topics.xml', 'en')

        assert names == ['Test Topic One', 'Template comments:Test Template']
        assert orchestrator.import_stage is ImportStage.DONE
        report = orchestrator.last_report
        assert report['status'] == 'completed'
        assert report['summary']['topics'] == 2
        assert report['summary']['versions'] == 3
        assert report['transitions'][:4] == ['parsing(1)', 'translating(1)', 'sequencing(1)', 'persisting(1)']
        assert report['transitions'][-2:] == ['parsing(3)', 'done']

    def test_reported_transitions_are_bounded(self, orchestrator, data_dir):
        orchestrator.max_transitions = 4
        orchestrator.import_from_file(data_dir / 'mediawiki-two-topics.xml', 'en')

        assert orchestrator.last_report['transitions'] == [
            'sequencing(2)', 'persisting(2)', 'parsing(3)', 'done'
        ]

    def test_question_mark_title(self, orchestrator, repository, data_dir):
        names = orchestrator.import_from_file(data_dir / 'mediawiki-question-mark.xml', 'en')
        assert names == ['Who am i?']
        assert repository.lookup_topic('en', 'Who am i?') is not None

    def test_virtual_wikis_are_separate(self, orchestrator, repository, data_dir):
        orchestrator.import_from_file(data_dir / 'mediawiki-question-mark.xml', 'en')
        orchestrator.import_from_file(data_dir / 'mediawiki-question-mark.xml', 'fr')

        assert repository.topic_names('en') == ['Who am i?']
        assert repository.topic_names('fr') == ['Who am i?']

    def test_aborted_import_reports_committed_topics(self, orchestrator, data_dir):
        with pytest.raises(MigrationError) as excinfo:
            orchestrator.import_from_file(data_dir / 'mediawiki-truncated.xml', 'en')

        assert excinfo.value.committed_topics == ['Complete Page']
        assert orchestrator.import_stage is ImportStage.ABORTED
        report = orchestrator.last_report
        assert report['status'] == 'aborted'
        assert report['error']['committed_topics'] == ['Complete Page']
        assert report['transitions'][-1] == 'aborted(2)'


class TestExportToFile:
    """Export flow."""

    def test_export_finalizes(self, orchestrator, data_dir, tmp_path):
        orchestrator.import_from_file(data_dir / 'mediawiki-two-topics.xml', 'en')
        path = tmp_path / 'export.xml'

        orchestrator.export_to_file(path, 'en', ['Test Topic One'])

        assert path.exists()
        assert orchestrator.export_state is ExportState.FINALIZED
        assert orchestrator.last_report['transitions'] == ['resolving', 'writing', 'finalized']
        assert orchestrator.last_report['summary']['versions'] == 2

    def test_export_of_nonexistent_topic_leaves_no_file(self, orchestrator, tmp_path):
        path = tmp_path / 'export.xml'
        path.write_text('', encoding='utf-8')

        with pytest.raises(MigrationError):
            orchestrator.export_to_file(path, 'en', ['Nonexistent Topic'])

        assert not path.exists()
        assert orchestrator.export_state is ExportState.ABORTED
        assert orchestrator.last_report['error']['unresolved_topics'] == ['Nonexistent Topic']

    def test_exclude_history_from_config(self, config, repository, data_dir, tmp_path):
        config['migration']['exclude_history'] = True
        orchestrator = MigrationOrchestrator(config, repository)
        orchestrator.import_from_file(data_dir / 'mediawiki-two-topics.xml', 'en')

        orchestrator.export_to_file(tmp_path / 'export.xml', 'en', ['Test Topic One'])

        assert orchestrator.last_report['summary']['versions'] == 1


class TestRoundTrip:
    """Export followed by import into an empty wiki."""

    def test_round_trip_reproduces_history(self, orchestrator, repository, config, data_dir, tmp_path):
        orchestrator.import_from_file(data_dir / 'mediawiki-two-topics.xml', 'en')
        orchestrator.import_from_file(data_dir / 'mediawiki-unsorted-history.xml', 'en')
        names = repository.topic_names('en')
        path = tmp_path / 'round-trip.xml'
        orchestrator.export_to_file(path, 'en', names)

        target = InMemoryTopicRepository()
        imported = MigrationOrchestrator(config, target).import_from_file(path, 'en')

        assert sorted(imported) == names
        assert version_summary(target, 'en') == version_summary(repository, 'en')
        template = target.lookup_topic('en', 'Template comments:Test Template')
        assert template.namespace_id == 11

    def test_round_trip_of_current_versions(self, orchestrator, repository, config, data_dir, tmp_path):
        orchestrator.import_from_file(data_dir / 'mediawiki-unsorted-history.xml', 'en')
        path = tmp_path / 'current.xml'
        orchestrator.export_to_file(path, 'en', ['Unsorted History'], exclude_history=True)

        target = InMemoryTopicRepository()
        MigrationOrchestrator(config, target).import_from_file(path, 'en')

        topic = target.lookup_topic('en', 'Unsorted History')
        history = target.get_topic_history(topic)
        assert [v.version_content for v in history] == ['Newest Revision']


class TestMigrationReport:
    """Report formatting."""

    def test_console_report(self, orchestrator, data_dir):
        orchestrator.import_from_file(data_dir / 'mediawiki-two-topics.xml', 'en')
        text = orchestrator.format_last_report()

        assert 'IMPORT REPORT' in text
        assert 'COMPLETED' in text
        assert 'Template comments:Test Template' in text

    def test_console_report_for_failure(self, orchestrator, tmp_path):
        with pytest.raises(MigrationError):
            orchestrator.export_to_file(tmp_path / 'x.xml', 'en', ['Missing'])
        text = orchestrator.format_last_report()

        assert 'ABORTED' in text
        assert 'Not found:   Missing' in text

    def test_json_report(self, orchestrator, data_dir, tmp_path):
        orchestrator.import_from_file(data_dir / 'mediawiki-question-mark.xml', 'en')
        path = tmp_path / 'report.json'
        MigrationReport().export_json_report(orchestrator.last_report, str(path))

        report = json.loads(path.read_text(encoding='utf-8'))
        assert report['operation'] == 'import'
        assert report['summary']['topic_names'] == ['Who am i?']

    def test_format_duration(self):
        report = MigrationReport()
        assert report._format_duration(5) == '5.0s'
        assert report._format_duration(125) == '2m 5s'
        assert report._format_duration(3725) == '1h 2m 5s'
