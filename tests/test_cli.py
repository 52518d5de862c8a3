#!/usr/bin/env python3
"""
Tests for storylinker/cli.py exit codes.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import add_translation
from storylinker.cli import EXIT_ERROR, EXIT_SUCCESS, EXIT_VALIDATION, build_parser, main


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_build_flags():
    args = build_parser().parse_args(['build', 'book', '--chapters', '3', '--no-assets'])
    assert args.command == 'build'
    assert args.chapters == 3
    assert args.no_assets is True
    assert args.project == Path('book')


def test_missing_project_dir(tmp_path, capsys):
    assert main(['tables', str(tmp_path / 'nope')]) == EXIT_ERROR
    assert 'is not a directory' in capsys.readouterr().err


def test_tables_then_build(project, capsys):
    assert main(['tables', str(project), '--chapters', '2']) == EXIT_SUCCESS
    assert 'Word count: 13' in capsys.readouterr().err

    add_translation(project, 'Russian')
    assert main(['build', str(project), '--chapters', '2', '--no-assets']) == EXIT_SUCCESS
    assert (project / 'Temp' / 'Chapter2' / 'Strings' / 'Russian.json').exists()
    assert not (project / 'Temp' / 'Chapter1' / 'Resources' / 'port_bg.png').exists()


def test_fatal_error_exit_code(project, capsys):
    assert main(['tables', str(project), '--chapters', '9']) == EXIT_ERROR
    assert 'Not enough chapters' in capsys.readouterr().err


def test_invalid_chapter_count(project):
    assert main(['tables', str(project), '--chapters', '0']) == EXIT_ERROR


def test_validation_errors_exit_code(project, capsys):
    assert main(['check-atlas', str(project)]) == EXIT_VALIDATION
    assert '[atlas]' in capsys.readouterr().err


def test_chapters_from_project_config(project):
    (project / 'storylinker.json').write_text('{"chapters": 3}')
    assert main(['tables', str(project)]) == EXIT_SUCCESS
    assert (project / 'Localization' / 'English' / 'Chapter_3_for_translating.xlsx').exists()


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
