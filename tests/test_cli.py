"""Tests for the Click CLI interface.

These tests verify that:
1. Options and environment variables are turned into a validated Config
2. Invalid option combinations are rejected before anything runs
3. Pipeline outcomes map to the documented exit codes
4. The pipeline writes or uploads the post-processed BOM
"""

import json
import os
import tempfile
import threading
import unittest
from importlib import import_module
from unittest.mock import MagicMock, patch

from click.testing import CliRunner
from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component, ComponentScope, ComponentType
from packageurl import PackageURL

from sbom_collector._collection import CollectionResult
from sbom_collector._upload import UploadResult
from sbom_collector.cli.main import (
    SBOM_COLLECTOR_VERSION,
    Config,
    build_config,
    cli,
    evaluate_boolean,
    run_pipeline,
)
from sbom_collector.exceptions import (
    APIError,
    CheckoutError,
    CollectionCancelledError,
    ConfigurationError,
    UnsupportedRepositoryError,
)

# Import the module object explicitly so we can patch its attributes.
# sbom_collector.cli.__init__ re-exports the `main` function, so
# `from sbom_collector.cli.main import main` would give us the function, not the module.
cli_main_module = import_module("sbom_collector.cli.main")


def _bom() -> Bom:
    return Bom(
        components=[
            Component(
                type=ComponentType.LIBRARY,
                name="requests",
                version="2.31.0",
                purl=PackageURL(type="pypi", name="requests", version="2.31.0"),
                bom_ref="pkg:pypi/requests@2.31.0",
                cpe="cpe:2.3:a:python:requests:2.31.0:*:*:*:*:*:*:*",
            )
        ]
    )


class TestCLIHelp(unittest.TestCase):
    """Test CLI help and version options."""

    def setUp(self):
        self.runner = CliRunner()

    def test_help_option(self):
        result = self.runner.invoke(cli, ["--help"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("Collect and merge CycloneDX SBOMs", result.output)
        self.assertIn("repo", result.output)
        self.assertIn("fs", result.output)

    def test_short_help_option(self):
        result = self.runner.invoke(cli, ["-h"])
        self.assertEqual(result.exit_code, 0)

    def test_repo_help(self):
        result = self.runner.invoke(cli, ["repo", "--help"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("--generic", result.output)
        self.assertIn("--exclude-scope", result.output)

    def test_version_option(self):
        result = self.runner.invoke(cli, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("sbom-collector", result.output)
        self.assertIn(SBOM_COLLECTOR_VERSION, result.output)


@patch.object(cli_main_module, "initialize_sentry")
@patch.object(cli_main_module, "run_pipeline")
class TestCLIConfig(unittest.TestCase):
    """Test that options reach run_pipeline as a Config."""

    def setUp(self):
        self.runner = CliRunner()

    def test_repo_defaults(self, mock_run, mock_sentry):
        result = self.runner.invoke(cli, ["repo", "https://github.com/acme/widget.git"])

        self.assertEqual(result.exit_code, 0, result.output)
        config = mock_run.call_args[0][0]
        self.assertEqual(config.mode, "repo")
        self.assertEqual(config.target, "https://github.com/acme/widget.git")
        self.assertEqual(config.output, "stdout")
        self.assertEqual(config.format, "json")
        self.assertFalse(config.generic)
        self.assertEqual(config.excluded_scope, ComponentScope.OPTIONAL)
        self.assertIsInstance(mock_run.call_args[0][1], threading.Event)
        mock_sentry.assert_called_once()

    def test_repo_options(self, mock_run, mock_sentry):
        result = self.runner.invoke(
            cli,
            [
                "repo",
                "https://github.com/acme/widget.git",
                "--generic",
                "--exclude-scope",
                "none",
                "--format",
                "xml",
                "--tags",
                "acme, payments",
                "--attach-cpes",
            ],
        )

        self.assertEqual(result.exit_code, 0, result.output)
        config = mock_run.call_args[0][0]
        self.assertTrue(config.generic)
        self.assertIsNone(config.excluded_scope)
        self.assertEqual(config.format, "xml")
        self.assertEqual(config.tags, ["acme", "payments"])
        self.assertTrue(config.attach_cpes)

    def test_env_var_fallback(self, mock_run, mock_sentry):
        result = self.runner.invoke(
            cli,
            ["repo", "https://github.com/acme/widget.git"],
            env={"SBOM_COLLECTOR_TAGS": "team-a", "SBOM_COLLECTOR_GENERIC": "true"},
        )

        self.assertEqual(result.exit_code, 0, result.output)
        config = mock_run.call_args[0][0]
        self.assertEqual(config.tags, ["team-a"])
        self.assertTrue(config.generic)

    def test_cli_takes_precedence_over_env(self, mock_run, mock_sentry):
        result = self.runner.invoke(
            cli,
            ["repo", "https://github.com/acme/widget.git", "--tags", "cli-tag"],
            env={"SBOM_COLLECTOR_TAGS": "env-tag"},
        )

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(mock_run.call_args[0][0].tags, ["cli-tag"])

    def test_fs_defaults_project_name_to_directory(self, mock_run, mock_sentry):
        with tempfile.TemporaryDirectory() as tmp_dir:
            project = os.path.join(tmp_dir, "my-service")
            os.makedirs(project)

            result = self.runner.invoke(
                cli,
                ["fs", project, "--exclude", "./vendor/**,**/*.min.js", "--code-owners", "dev@acme.test"],
            )

        self.assertEqual(result.exit_code, 0, result.output)
        config = mock_run.call_args[0][0]
        self.assertEqual(config.mode, "fs")
        self.assertEqual(config.project_name, "my-service")
        self.assertEqual(config.exclude, ["./vendor/**", "**/*.min.js"])
        self.assertEqual(config.code_owners, ["dev@acme.test"])

    def test_fs_requires_existing_directory(self, mock_run, mock_sentry):
        result = self.runner.invoke(cli, ["fs", "/definitely/not/here"])
        self.assertNotEqual(result.exit_code, 0)
        mock_run.assert_not_called()

    def test_file_output_requires_path(self, mock_run, mock_sentry):
        result = self.runner.invoke(cli, ["repo", "https://github.com/acme/widget.git", "--output", "file"])
        self.assertEqual(result.exit_code, 1)
        mock_run.assert_not_called()

    def test_attach_and_strip_cpes_conflict(self, mock_run, mock_sentry):
        result = self.runner.invoke(
            cli, ["repo", "https://github.com/acme/widget.git", "--attach-cpes", "--strip-cpes"]
        )
        self.assertEqual(result.exit_code, 1)
        mock_run.assert_not_called()

    def test_dtrack_output_requires_settings(self, mock_run, mock_sentry):
        result = self.runner.invoke(
            cli,
            ["repo", "https://github.com/acme/widget.git", "--output", "dtrack"],
            env={"DTRACK_API_URL": "", "DTRACK_API_KEY": ""},
        )
        self.assertEqual(result.exit_code, 1)
        mock_run.assert_not_called()

    def test_invalid_scope_is_rejected_by_click(self, mock_run, mock_sentry):
        result = self.runner.invoke(cli, ["repo", "https://github.com/acme/widget.git", "--exclude-scope", "dev"])
        self.assertNotEqual(result.exit_code, 0)
        mock_run.assert_not_called()


@patch.object(cli_main_module, "initialize_sentry")
@patch.object(cli_main_module, "run_pipeline")
class TestCLIExitCodes(unittest.TestCase):
    """Test that pipeline outcomes map to exit codes."""

    def setUp(self):
        self.runner = CliRunner()

    def _invoke(self):
        return self.runner.invoke(cli, ["repo", "https://github.com/acme/widget.git"])

    def test_success(self, mock_run, mock_sentry):
        self.assertEqual(self._invoke().exit_code, 0)

    def test_unsupported_repository(self, mock_run, mock_sentry):
        mock_run.side_effect = UnsupportedRepositoryError("No collector produced a BOM")
        self.assertEqual(self._invoke().exit_code, 3)

    def test_cancelled(self, mock_run, mock_sentry):
        mock_run.side_effect = CollectionCancelledError("cancelled")
        self.assertEqual(self._invoke().exit_code, 130)

    def test_runtime_failure(self, mock_run, mock_sentry):
        mock_run.side_effect = CheckoutError("Failed to clone")
        self.assertEqual(self._invoke().exit_code, 1)

    def test_upload_failure(self, mock_run, mock_sentry):
        mock_run.side_effect = APIError("Upload to dependency-track failed")
        self.assertEqual(self._invoke().exit_code, 1)


class TestBuildConfig(unittest.TestCase):
    """Test build_config and Config.validate directly."""

    def test_valid_repo_config(self):
        config = build_config(mode="repo", target="https://github.com/acme/widget.git", tags="a,,b ")
        self.assertEqual(config.tags, ["a", "b"])
        self.assertEqual(config.exclude_scope, "optional")

    def test_unknown_mode(self):
        with self.assertRaises(ConfigurationError):
            build_config(mode="image", target="alpine:3.18")

    def test_missing_target(self):
        with self.assertRaises(ConfigurationError):
            build_config(mode="repo", target="")

    def test_unknown_output(self):
        with self.assertRaises(ConfigurationError):
            Config(mode="repo", target="https://github.com/acme/widget.git", output="s3").validate()

    def test_scope_none_disables_filter(self):
        config = build_config(mode="repo", target="https://github.com/acme/widget.git", exclude_scope="none")
        self.assertIsNone(config.excluded_scope)

    @patch.dict(os.environ, {"DTRACK_API_URL": "https://dtrack.example.test", "DTRACK_API_KEY": "key"})
    def test_dtrack_with_settings(self):
        config = build_config(mode="repo", target="https://github.com/acme/widget.git", output="dtrack")
        self.assertEqual(config.output, "dtrack")


class TestEvaluateBoolean(unittest.TestCase):
    def test_truthy(self):
        for value in ("true", "True", "YES", "yeah", "1"):
            self.assertTrue(evaluate_boolean(value), value)

    def test_falsy(self):
        for value in ("false", "no", "0", ""):
            self.assertFalse(evaluate_boolean(value), value)


class TestRunPipeline(unittest.TestCase):
    """Test the pipeline wiring with collection and checkout mocked out."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_dir = self._tmp.name
        self.orchestrator = MagicMock()
        self.orchestrator.collect.return_value = CollectionResult(bom=_bom())

    def tearDown(self):
        self._tmp.cleanup()

    def test_fs_writes_file_with_created_at(self):
        output_file = os.path.join(self.tmp_dir, "bom.json")
        config = build_config(mode="fs", target=self.tmp_dir, output="file", output_file=output_file)

        with patch.object(cli_main_module, "CollectionOrchestrator", return_value=self.orchestrator) as mock_cls:
            run_pipeline(config, threading.Event())

        registry = mock_cls.call_args[0][0]
        self.assertEqual([c.name for c in registry.repository_collectors], ["syft"])
        with open(output_file) as f:
            document = json.load(f)
        self.assertEqual([c["name"] for c in document["components"]], ["requests"])
        self.assertIn("createdAt", [p["name"] for p in document["properties"]])

    def test_strip_cpes(self):
        output_file = os.path.join(self.tmp_dir, "bom.json")
        config = build_config(
            mode="fs", target=self.tmp_dir, output="file", output_file=output_file, strip_cpes=True
        )

        with patch.object(cli_main_module, "CollectionOrchestrator", return_value=self.orchestrator):
            run_pipeline(config, threading.Event())

        with open(output_file) as f:
            document = json.load(f)
        self.assertNotIn("cpe", document["components"][0])

    def test_repo_checks_out_and_collects(self):
        output_file = os.path.join(self.tmp_dir, "bom.xml")
        config = build_config(
            mode="repo",
            target="https://github.com/acme/widget.git",
            output="file",
            output_file=output_file,
            format="xml",
            generic=True,
        )
        repository = MagicMock()
        repository.path = "/tmp/checkouts/widget-x/widget"
        repository.name = "widget"
        repository.code_owners = []
        checkout = MagicMock()
        checkout.return_value.__enter__.return_value = repository

        with patch.object(cli_main_module, "checkout_repository", checkout), patch.object(
            cli_main_module, "CollectionOrchestrator", return_value=self.orchestrator
        ) as mock_cls:
            run_pipeline(config, threading.Event())

        self.orchestrator.collect.assert_called_once_with("/tmp/checkouts/widget-x/widget")
        registry = mock_cls.call_args[0][0]
        self.assertEqual([c.name for c in registry.repository_collectors], ["trivy", "retirejs", "cdxgen"])
        self.assertEqual(mock_cls.call_args[1]["excluded_scope"], ComponentScope.OPTIONAL)
        with open(output_file) as f:
            self.assertTrue(f.read().lstrip().startswith("<"))

    @patch.dict(os.environ, {"DTRACK_API_URL": "https://dtrack.example.test", "DTRACK_API_KEY": "key"})
    def test_dtrack_upload(self):
        config = build_config(
            mode="fs", target=self.tmp_dir, output="dtrack", tags="acme", project_name="svc", code_owners="a@x.test"
        )
        destination = MagicMock()
        destination.name = "dependency-track"
        destination.upload.return_value = UploadResult.success_result("dependency-track", project_name="svc")

        with patch.object(cli_main_module, "CollectionOrchestrator", return_value=self.orchestrator), patch.object(
            cli_main_module, "DependencyTrackDestination", return_value=destination
        ):
            run_pipeline(config, threading.Event())

        upload_input = destination.upload.call_args[0][0]
        self.assertEqual(upload_input.project_name, "svc")
        self.assertEqual(upload_input.tags, ["acme"])
        self.assertEqual(upload_input.code_owners, ["a@x.test"])
        self.assertEqual(json.loads(upload_input.bom_data)["components"][0]["name"], "requests")

    @patch.dict(os.environ, {"DTRACK_API_URL": "https://dtrack.example.test", "DTRACK_API_KEY": "key"})
    def test_failed_upload_raises(self):
        config = build_config(mode="fs", target=self.tmp_dir, output="dtrack")
        destination = MagicMock()
        destination.name = "dependency-track"
        destination.upload.return_value = UploadResult.failure_result("dependency-track", "[500] server error")

        with patch.object(cli_main_module, "CollectionOrchestrator", return_value=self.orchestrator), patch.object(
            cli_main_module, "DependencyTrackDestination", return_value=destination
        ):
            with self.assertRaises(APIError):
                run_pipeline(config, threading.Event())


if __name__ == "__main__":
    unittest.main()
