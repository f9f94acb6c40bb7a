"""Unit tests for the command-line entry point."""

import zipfile

import pytest

from epub_translator import cli
from epub_translator.config import AppSettings
from epub_translator.core.cancellation import CancellationToken
from fixtures.fake_providers import ScriptedProvider


def parse(*argv):
    return cli.build_parser().parse_args(list(argv))


@pytest.fixture
def offline_provider(monkeypatch):
    """Route provider construction to a scripted provider."""
    created = []

    def factory(settings, logger=None, default_options=None):
        provider = ScriptedProvider(default_options=default_options)
        created.append(provider)
        return provider

    monkeypatch.setattr(cli, "create_provider_from_settings", factory)
    return created


def offline_settings(tmp_path, **overrides):
    values = dict(openai_api_key="sk-test", memory_directory=str(tmp_path / "tm"),
                  retry_delay=0.0, memory_auto_optimize=False)
    values.update(overrides)
    return AppSettings(**values)


class TestParser:

    def test_positionals_and_default_target(self):
        args = parse("in.epub", "out.epub", "en")
        assert (args.input, args.output, args.source_lang, args.target_lang) == ("in.epub", "out.epub", "en", "zh")

    def test_options(self):
        args = parse("in.epub", "out.epub", "en", "fr", "--provider", "azure", "--max-tokens", "500",
                     "--no-memory", "--no-progress")
        assert args.target_lang == "fr"
        assert args.provider == "azure"
        assert args.max_tokens == 500
        assert args.no_memory and args.no_progress

    def test_missing_positionals_exit_nonzero(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["only-input.epub"])
        assert exc_info.value.code != 0

    def test_help_exits_zero_with_configuration(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--help"])
        assert exc_info.value.code == 0
        output = capsys.readouterr().out
        assert "usage: translate.py" in output
        assert "Configuration:" in output


class TestMain:

    def test_invalid_configuration_returns_failure(self, monkeypatch, tmp_path):
        monkeypatch.setattr(cli.AppSettings, "from_cli_args",
                            classmethod(lambda cls, args: cls(llm_provider="openai", openai_api_key="")))
        code = cli.main([str(tmp_path / "in.epub"), str(tmp_path / "out.epub"), "en", "--no-color"])
        assert code == cli.EXIT_FAILURE


class TestRunTranslation:

    @pytest.mark.asyncio
    async def test_translates_book(self, simple_epub, tmp_path, quiet_logger, offline_provider, capsys):
        output = tmp_path / "out.epub"
        args = parse(simple_epub, str(output), "en", "zh", "--no-progress")

        code = await cli.run_translation(args, offline_settings(tmp_path), quiet_logger)

        assert code == cli.EXIT_OK
        assert offline_provider[0].closed
        with zipfile.ZipFile(output) as archive:
            assert "<dc:language>zh</dc:language>" in archive.read("OEBPS/content.opf").decode("utf-8")
            assert "[zh] The morning was quiet." in archive.read("OEBPS/text/chapter_001.xhtml").decode("utf-8")
        assert "Translation Summary" in capsys.readouterr().out
        assert (tmp_path / "tm" / "translation_memory.json").exists()

    @pytest.mark.asyncio
    async def test_missing_input(self, tmp_path, quiet_logger, offline_provider):
        args = parse(str(tmp_path / "missing.epub"), str(tmp_path / "out.epub"), "en", "--no-progress")
        code = await cli.run_translation(args, offline_settings(tmp_path), quiet_logger)
        assert code == cli.EXIT_FAILURE
        assert offline_provider == []

    @pytest.mark.asyncio
    async def test_cancelled_run_writes_no_output(self, simple_epub, tmp_path, quiet_logger, offline_provider):
        token = CancellationToken()
        token.cancel("Interrupted by user")
        output = tmp_path / "out.epub"
        args = parse(simple_epub, str(output), "en", "--no-progress")

        code = await cli.run_translation(args, offline_settings(tmp_path, memory_enabled=False),
                                         quiet_logger, token)

        assert code == cli.EXIT_CANCELLED
        assert not output.exists()
        assert offline_provider[0].closed
