#!/usr/bin/env python3
"""Tests for cli.py and activation/cli.py - verb dispatch and handlers."""

import json
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

import pytest

import cli
from activation import cli as activation_cli
from activation.machine import CancellationToken
from conftest import scripted_query
from orchestrator.errors import LaunchError, TeardownError
from orchestrator.states import PollResult


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / 'driver.yaml'
    path.write_text(f"""
okteto_home: {tmp_path / 'okteto-home'}
state_dir: {tmp_path / 'state'}
poll_interval: 0.001
max_ticks: 20
watch_interval: 0.001
""")
    return path


@pytest.fixture
def patched_client(fake_client):
    with patch('activation.cli.OrchestratorClient', return_value=fake_client):
        yield fake_client


def base_args(config_file, kubeconfig_file):
    return ['--config', str(config_file), '--kubeconfig', str(kubeconfig_file)]


class TestMain:
    """Test top-level dispatch."""

    def test_no_args_prints_usage(self, capsys):
        assert cli.main([]) == 0
        out = capsys.readouterr().out
        assert 'Usage: devenv <verb>' in out
        for verb in cli.VERB_COMMANDS:
            assert verb in out

    def test_unknown_verb(self, capsys):
        assert cli.main(['launch']) == 1
        assert "Unknown command 'launch'" in capsys.readouterr().out

    def test_version(self, capsys):
        assert cli.main(['--version']) == 0
        assert capsys.readouterr().out.startswith('devenv-driver ')

    def test_dispatches_to_handler(self):
        with patch('activation.cli.down_main', return_value=0) as mock_down:
            assert cli.main(['down', '-n', 'dev']) == 0
        mock_down.assert_called_once_with(['-n', 'dev'])


class TestUp:
    """Test the up verb."""

    def test_ready(self, patched_client, config_file, manifest_file, kubeconfig_file, capsys):
        patched_client.query.side_effect = scripted_query('pulling', 'ready')

        rc = activation_cli.up_main(['-f', str(manifest_file)] + base_args(config_file, kubeconfig_file))

        assert rc == 0
        out = capsys.readouterr().out
        assert 'Launching your development environment...' in out
        assert 'Pulling your image...' in out
        assert 'Your development container is ready!' in out
        patched_client.launch.assert_called_once_with(manifest_file, 'dev', 'frontend', kubeconfig_file)

    def test_json_output(self, patched_client, config_file, manifest_file, kubeconfig_file, capsys):
        rc = activation_cli.up_main(
            ['-f', str(manifest_file), '--json-output'] + base_args(config_file, kubeconfig_file))

        assert rc == 0
        data = json.loads(capsys.readouterr().out)
        assert data['namespace'] == 'dev'
        assert data['name'] == 'frontend'
        assert data['status'] == 'ready'

    def test_failed(self, patched_client, config_file, manifest_file, kubeconfig_file, capsys):
        patched_client.query.side_effect = scripted_query('failed:crash loop')
        patched_client.log_tail.return_value = 'Error: crash loop'

        rc = activation_cli.up_main(['-f', str(manifest_file)] + base_args(config_file, kubeconfig_file))

        assert rc == 1
        captured = capsys.readouterr()
        assert 'Up command failed: crash loop' in captured.out
        assert 'Error: crash loop' in captured.err

    def test_timeout(self, patched_client, config_file, manifest_file, kubeconfig_file, capsys):
        patched_client.query.side_effect = scripted_query('pulling')
        rc = activation_cli.up_main(
            ['-f', str(manifest_file), '--max-ticks', '2'] + base_args(config_file, kubeconfig_file))
        assert rc == 1
        assert "task didn't finish in 5 minutes" in capsys.readouterr().out

    def test_launch_error(self, patched_client, config_file, manifest_file, kubeconfig_file, capsys):
        patched_client.launch.side_effect = LaunchError("okteto up failed to start")
        rc = activation_cli.up_main(['-f', str(manifest_file)] + base_args(config_file, kubeconfig_file))
        assert rc == 1
        assert 'Up failed: okteto up failed to start' in capsys.readouterr().err

    def test_manifest_error(self, patched_client, config_file, tmp_path, kubeconfig_file, capsys):
        rc = activation_cli.up_main(
            ['-f', str(tmp_path / 'missing.yml')] + base_args(config_file, kubeconfig_file))
        assert rc == 1
        assert 'failed to load your manifest' in capsys.readouterr().err
        patched_client.launch.assert_not_called()

    def test_no_context_is_not_reported_as_manifest_error(self, patched_client, config_file, manifest_file,
                                                          tmp_path, capsys):
        kubeconfig = tmp_path / 'empty-kubeconfig'
        kubeconfig.write_text('contexts: []\n')

        rc = activation_cli.up_main(['-f', str(manifest_file)] + base_args(config_file, kubeconfig))

        assert rc == 1
        err = capsys.readouterr().err
        assert "Couldn't detect your current Kubernetes context." in err
        assert 'failed to load your manifest' not in err
        patched_client.launch.assert_not_called()

    def test_cancelled(self, patched_client, config_file, manifest_file, kubeconfig_file):
        class CancelledToken(CancellationToken):
            def __init__(self):
                super().__init__()
                self.cancel()

        patched_client.query.side_effect = scripted_query('pulling')
        with patch('activation.cli.CancellationToken', CancelledToken):
            rc = activation_cli.up_main(['-f', str(manifest_file)] + base_args(config_file, kubeconfig_file))

        assert rc == activation_cli.EXIT_CANCELLED
        patched_client.teardown.assert_called_once()

    def test_watch_reports_later_failure(self, patched_client, config_file, manifest_file, kubeconfig_file, capsys):
        patched_client.query.side_effect = scripted_query('ready', 'ready', 'failed:evicted')
        rc = activation_cli.up_main(
            ['-f', str(manifest_file), '--watch'] + base_args(config_file, kubeconfig_file))
        assert rc == 1
        assert 'failed: evicted' in capsys.readouterr().err

    def test_report_dir(self, patched_client, config_file, manifest_file, kubeconfig_file, tmp_path):
        report_dir = tmp_path / 'reports'
        rc = activation_cli.up_main(
            ['-f', str(manifest_file), '--report-dir', str(report_dir)] + base_args(config_file, kubeconfig_file))
        assert rc == 0
        assert len(list(report_dir.glob('*.dev-frontend.ready.json'))) == 1

    def test_invalid_interval(self, config_file, manifest_file, kubeconfig_file, capsys):
        rc = activation_cli.up_main(
            ['-f', str(manifest_file), '--interval', '0'] + base_args(config_file, kubeconfig_file))
        assert rc == 1
        assert '--interval' in capsys.readouterr().err


class TestOpen:
    """Test the open verb."""

    def test_link_selects_manifest(self, patched_client, config_file, kubeconfig_file, tmp_path):
        workspace = tmp_path / 'repo'
        for d in ('api', 'web'):
            (workspace / d).mkdir(parents=True)
            (workspace / d / 'okteto.yml').write_text(f'name: {d}\n')

        rc = activation_cli.open_main([
            'vscode://okteto.remote-kubernetes/up?manifest=web/okteto.yml',
            '--workspace', str(workspace),
        ] + base_args(config_file, kubeconfig_file))

        assert rc == 0
        assert patched_client.launch.call_args[0][0] == workspace / 'web' / 'okteto.yml'

    def test_unsupported_link(self, config_file, kubeconfig_file, capsys):
        rc = activation_cli.open_main(
            ['vscode://okteto.remote-kubernetes/down'] + base_args(config_file, kubeconfig_file))
        assert rc == 1
        assert 'Unsupported activation link' in capsys.readouterr().err


class TestDown:
    """Test the down verb."""

    def test_down_manifest(self, patched_client, config_file, manifest_file, kubeconfig_file, capsys):
        rc = activation_cli.down_main(['-f', str(manifest_file)] + base_args(config_file, kubeconfig_file))
        assert rc == 0
        assert 'dev/frontend deactivated' in capsys.readouterr().out
        patched_client.teardown.assert_called_once_with(manifest_file, 'dev', kubeconfig_file)

    def test_down_failure(self, patched_client, config_file, manifest_file, kubeconfig_file, capsys):
        patched_client.teardown.side_effect = TeardownError("okteto down failed: boom")
        rc = activation_cli.down_main(['-f', str(manifest_file)] + base_args(config_file, kubeconfig_file))
        assert rc == 1
        assert 'Down failed' in capsys.readouterr().err

    def test_down_nothing_active(self, patched_client, config_file, kubeconfig_file, capsys):
        rc = activation_cli.down_main(base_args(config_file, kubeconfig_file))
        assert rc == 1
        assert 'No active environment' in capsys.readouterr().err


class TestCreate:
    """Test the create verb."""

    def test_create(self, patched_client, config_file, kubeconfig_file, tmp_path, capsys):
        rc = activation_cli.create_main(
            ['--runtime', 'golang', '--workspace', str(tmp_path)] + base_args(config_file, kubeconfig_file))
        assert rc == 0
        patched_client.init.assert_called_once_with(tmp_path / 'okteto.yml', 'golang')

    def test_unknown_runtime_rejected_by_parser(self, config_file, kubeconfig_file):
        with pytest.raises(SystemExit):
            activation_cli.create_main(['--runtime', 'cobol'] + base_args(config_file, kubeconfig_file))


class TestInstall:
    """Test the install verb."""

    def test_install(self, patched_client, config_file, kubeconfig_file, capsys):
        patched_client.needs_install.return_value = (True, False)
        patched_client.version.return_value = (2, 14, 1)
        patched_client.binary.return_value = '/home/user/.local/bin/okteto'

        rc = activation_cli.install_main(base_args(config_file, kubeconfig_file))

        assert rc == 0
        patched_client.install.assert_called_once()
        assert 'okteto 2.14.1 at /home/user/.local/bin/okteto' in capsys.readouterr().out

    def test_upgrade_flag(self, patched_client, config_file, kubeconfig_file):
        patched_client.version.return_value = None
        rc = activation_cli.install_main(['--upgrade'] + base_args(config_file, kubeconfig_file))
        assert rc == 0
        patched_client.upgrade.assert_called_once()


class TestStatus:
    """Test the status verb."""

    def test_status_json(self, patched_client, config_file, manifest_file, kubeconfig_file, capsys):
        patched_client.query.side_effect = None
        patched_client.query.return_value = PollResult.parse('synchronizing')

        rc = activation_cli.status_main(
            ['-f', str(manifest_file), '--json-output'] + base_args(config_file, kubeconfig_file))

        assert rc == 0
        data = json.loads(capsys.readouterr().out)
        assert data == {
            'namespace': 'dev',
            'name': 'frontend',
            'state': 'syncing',
            'raw_state': 'synchronizing',
            'message': '',
        }
