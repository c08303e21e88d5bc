#!/usr/bin/env python3
"""Tests for kubeconfig.py - current context discovery."""

import os
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from kubeconfig import DEFAULT_NAMESPACE, current_namespace, get_kubeconfig


class TestGetKubeconfig:
    """Test get_kubeconfig."""

    def test_env_var_first_entry(self, tmp_path):
        value = os.pathsep.join([str(tmp_path / 'a'), str(tmp_path / 'b')])
        with patch.dict('os.environ', {'KUBECONFIG': value}):
            assert get_kubeconfig() == tmp_path / 'a'

    def test_default(self, tmp_path, monkeypatch):
        monkeypatch.delenv('KUBECONFIG', raising=False)
        with patch('kubeconfig.Path.home', return_value=tmp_path):
            assert get_kubeconfig() == tmp_path / '.kube' / 'config'


class TestCurrentNamespace:
    """Test current_namespace."""

    def test_context_namespace(self, kubeconfig_file):
        assert current_namespace(kubeconfig_file) == 'dev'

    def test_context_without_namespace(self, tmp_path):
        path = tmp_path / 'config'
        path.write_text("""
current-context: kind
contexts:
  - name: kind
    context:
      cluster: kind
""")
        assert current_namespace(path) == DEFAULT_NAMESPACE

    def test_missing_file(self, tmp_path):
        assert current_namespace(tmp_path / 'missing') is None

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / 'config'
        path.write_text('contexts: [\n')
        assert current_namespace(path) is None

    def test_no_current_context(self, tmp_path):
        path = tmp_path / 'config'
        path.write_text('contexts: []\n')
        assert current_namespace(path) is None

    def test_undefined_current_context(self, tmp_path):
        path = tmp_path / 'config'
        path.write_text("""
current-context: gone
contexts:
  - name: kind
    context:
      namespace: dev
""")
        assert current_namespace(path) is None

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / 'config'
        path.write_text('- a\n')
        assert current_namespace(path) is None

    def test_invalid_utf8(self, tmp_path):
        path = tmp_path / 'config'
        path.write_bytes(b'current-context: \xff\xfe\n')
        assert current_namespace(path) is None
