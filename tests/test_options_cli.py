"""Tests for compiler options and the command line interface."""

import json
import logging

import pytest

from cms_content_compiler.cli import build_parser, main, options_from_args
from cms_content_compiler.config.compiler_options import CompilerOptions, LockOptions
from cms_content_compiler.exceptions import ConfigurationError


class TestCompilerOptions:
    def test_defaults(self):
        options = CompilerOptions()
        options.validate()
        assert options.schema == "schema.yml"
        assert options.out_folder == "out"
        assert options.exit_on_error is True
        assert options.use_lockfile is True
        assert options.lock == LockOptions(stale_ms=10000, update_ms=5000, retries=10)

    def test_from_mapping_accepts_camel_case(self, tmp_path):
        options = CompilerOptions.from_mapping(
            {
                "cwd": str(tmp_path),
                "outFolder": "dist",
                "narrowSlugs": True,
                "markdownLoaderModule": "my_site.markdown",
                "lock": {"staleMs": 20000, "warningThresholdMs": 100},
            },
            base=CompilerOptions(),
        )
        assert options.out_folder == "dist"
        assert options.narrow_slugs is True
        assert options.markdown_loader_module == "my_site.markdown"
        assert options.lock.stale_ms == 20000
        assert options.lock.update_ms == 5000
        assert options.lock.warning_threshold_ms == 100
        assert options.out_path == tmp_path.resolve() / "dist"
        assert options.schema_path == tmp_path.resolve() / "schema.yml"

    @pytest.mark.parametrize(
        "data, message",
        [
            ({"unknown": 1}, "Unknown compiler option"),
            ({"raw": "yes"}, "must be a boolean"),
            ({"schema": ""}, "non-empty string"),
            ({"markdownTypeIdentifier": "not valid"}, "Python identifier"),
            ({"logLevel": "LOUD"}, "Unknown log level"),
            ({"lock": {"staleMs": 1000}}, "stale_ms must be >= 5000"),
            ({"lock": {"updateMs": 500}}, "update_ms must be >= 1000"),
            ({"lock": {"staleMs": 6000, "updateMs": 6000}}, "lower than"),
            ({"lock": {"retries": -1}}, "retries must be >= 0"),
            ({"lock": {"retries": "3"}}, "must be an integer"),
            ({"lock": {"other": 1}}, "Unknown lock option"),
            ({"lock": 5}, "must be a mapping"),
        ],
    )
    def test_invalid_values(self, data, message):
        with pytest.raises(ConfigurationError, match=message):
            CompilerOptions.from_mapping(data, base=CompilerOptions())

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("CMS_CONTENT_COMPILER_LOG_LEVEL", "DEBUG")
        assert CompilerOptions.from_env().log_level == "DEBUG"


class TestCli:
    def test_flags_override_config_file(self, tmp_path):
        config = tmp_path / "compiler.json"
        config.write_text(json.dumps({"outFolder": "from-file", "raw": True, "lock": {"retries": 1}}))

        args = build_parser().parse_args([
            "compile",
            "--config", str(config),
            "--out-folder", "from-flag",
            "--no-raw",
            "--runtime",
            "--lock-retries", "3",
        ])
        options = options_from_args(args)
        assert options.out_folder == "from-flag"
        assert options.raw is False
        assert options.runtime is True
        assert options.lock.retries == 3

    def test_unset_flags_keep_defaults(self):
        options = options_from_args(build_parser().parse_args(["compile"]))
        assert options == CompilerOptions.from_mapping({}, base=CompilerOptions.from_env())

    def test_yaml_config_file(self, tmp_path):
        config = tmp_path / "compiler.yml"
        config.write_text("schema: cms.yml\nsourceLocation: true\n")
        options = options_from_args(build_parser().parse_args(["compile", "--config", str(config)]))
        assert options.schema == "cms.yml"
        assert options.source_location is True

    def test_main_compiles(self, blog_project):
        with pytest.raises(SystemExit) as excinfo:
            main(["compile", "--cwd", str(blog_project), "--silent"])
        assert excinfo.value.code == 0
        assert (blog_project / "out/assets/index.py").is_file()
        assert logging.getLogger("cms_content_compiler").level > logging.CRITICAL

    def test_main_reports_fatal_errors(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["compile", "--cwd", str(tmp_path), "--silent"])
        assert excinfo.value.code == 1
        assert "Failed to read schema file" in capsys.readouterr().err

    def test_main_rejects_bad_config(self, tmp_path, capsys):
        config = tmp_path / "compiler.yml"
        config.write_text("nope: 1\n")
        with pytest.raises(SystemExit) as excinfo:
            main(["compile", "--config", str(config)])
        assert excinfo.value.code == 1
        assert "Unknown compiler option: nope" in capsys.readouterr().err
