"""Tests for the command line entry point."""

import logging

import pytest

import main
from lecture_transcripts.config import Config
from lecture_transcripts.logging_config import ROOT_LOGGER


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    monkeypatch.delenv("COURSE_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("LTX_PLATFORM__ACCESS_TOKEN", raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    # main() attaches handlers bound to the captured stdout
    root = logging.getLogger(ROOT_LOGGER)
    root.handlers.clear()
    root.propagate = True


class TestArguments:

    def test_flags_override_config(self):
        args = main.build_parser().parse_args([
            "python-basics", "-k", "3", "--locale", "de_DE", "--captions",
            "-o", "out", "--zip", "--headed", "--verbose",
        ])
        config = Config()

        main.apply_overrides(config, args)

        assert config.extraction.lanes == 3
        assert config.extraction.preferred_locale == "de_DE"
        assert config.extraction.download_captions is True
        assert config.output.directory == "out"
        assert config.output.archive is True
        assert config.browser.headless is False
        assert config.logging.level == "DEBUG"

    def test_no_flags_keep_config(self):
        args = main.build_parser().parse_args(["python-basics"])
        config = Config()

        main.apply_overrides(config, args)

        assert config == Config()


class TestMain:

    def test_no_course_prints_help(self, capsys):
        assert main.main([]) == 1
        assert "usage:" in capsys.readouterr().out

    def test_summary_of_contents_listing(self, tmp_path, capsys):
        path = tmp_path / "contents.txt"
        path.write_text(
            "1. Intro\n1.1 Welcome [2 min, 03/14/24]\n1.2 Setup [5 min, 03/14/24]\n\n"
            "1. Preview [1 min, 03/14/24]\n",
            encoding="utf-8",
        )

        assert main.main(["--summary", str(path)]) == 0

        out = capsys.readouterr().out
        assert "Chapters: 1" in out
        assert "Lectures: 3" in out

    def test_summary_of_missing_file(self, tmp_path):
        assert main.main(["--summary", str(tmp_path / "missing.txt")]) == 1

    def test_missing_token_is_reported(self, capsys):
        assert main.main(["python-basics"]) == 1
        assert "platform.access_token" in capsys.readouterr().out

    def test_bad_config_file(self, tmp_path):
        assert main.main(["python-basics", "--config", str(tmp_path / "nope.yaml")]) == 1

    def test_unknown_log_level_is_reported(self, monkeypatch, capsys):
        monkeypatch.setenv("LTX_LOGGING__LEVEL", "LOUD")

        assert main.main(["python-basics"]) == 1
        assert "logging.level" in capsys.readouterr().out

    def test_quoted_number_in_config_file(self, tmp_path, capsys):
        path = tmp_path / "config.yaml"
        path.write_text("extraction:\n  lanes: \"3\"\n", encoding="utf-8")

        assert main.main(["python-basics", "--config", str(path)]) == 1
        assert "extraction.lanes" in capsys.readouterr().out
