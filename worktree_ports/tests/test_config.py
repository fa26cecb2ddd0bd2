"""
Tests for configuration loading.
"""

import json
import os

import pytest

from worktree_ports import Config, ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove GWT_* variables inherited from the calling shell."""
    for key in list(os.environ):
        if key.startswith("GWT_"):
            monkeypatch.delenv(key)


# ============================================================================
# Config Tests
# ============================================================================

class TestConfig:
    """Tests for Config."""
    
    def test_defaults(self):
        config = Config()
        
        assert config.get_port_base() == 40000
        assert config.get_port_ceiling() == 65535
        assert config.get_index_file_name() == ".gwt_index"
        assert config.get_template_file_name() == ".env.template"
        assert config.get_port_suffix() == "_PORT"
        assert config.get_probe_enabled() is True
        assert config.get_lock_enabled() is True
    
    def test_defaults_not_shared(self):
        """Changing one config leaves DEFAULT_CONFIG untouched."""
        config = Config()
        config.set("portAllocation.base", 41000)
        
        assert Config.DEFAULT_CONFIG["portAllocation"]["base"] == 40000
        assert Config().get_port_base() == 40000
    
    def test_file_overrides(self, tmp_path):
        path = tmp_path / "gwt.json"
        path.write_text(json.dumps({"portAllocation": {"base": 50000}, "probe": {"enabled": False}}))
        
        config = Config(str(path))
        
        assert config.get_port_base() == 50000
        assert config.get_port_ceiling() == 65535
        assert config.get_probe_enabled() is False
    
    def test_missing_file_uses_defaults(self, tmp_path):
        config = Config(str(tmp_path / "missing.json"))
        
        assert config.get_port_base() == 40000
    
    def test_invalid_json(self, tmp_path):
        path = tmp_path / "gwt.json"
        path.write_text("{not json")
        
        with pytest.raises(ConfigError, match="Invalid JSON"):
            Config(str(path))
    
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("GWT_PORT_BASE", "45000")
        monkeypatch.setenv("GWT_PROBE", "no")
        monkeypatch.setenv("GWT_LOCK_TIMEOUT", "2.5")
        
        config = Config()
        
        assert config.get_port_base() == 45000
        assert config.get_probe_enabled() is False
        assert config.get_lock_timeout() == 2.5
    
    def test_env_unparseable(self, monkeypatch):
        monkeypatch.setenv("GWT_PORT_CEILING", "lots")
        
        with pytest.raises(ConfigError) as exc_info:
            Config()
        
        assert exc_info.value.config_key == "portAllocation.ceiling"
    
    def test_env_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / "gwt.env"
        env_file.write_text("GWT_PORT_BASE=47000\nGWT_INDEX_FILE=.ports\n")
        # load_dotenv writes to os.environ; register the keys for cleanup
        monkeypatch.setenv("GWT_PORT_BASE", "")
        monkeypatch.delenv("GWT_PORT_BASE")
        monkeypatch.setenv("GWT_INDEX_FILE", "")
        monkeypatch.delenv("GWT_INDEX_FILE")
        
        config = Config(env_file=str(env_file))
        
        assert config.get_port_base() == 47000
        assert config.get_index_file_name() == ".ports"
    
    def test_env_wins_over_env_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / "gwt.env"
        env_file.write_text("GWT_PORT_BASE=47000\n")
        monkeypatch.setenv("GWT_PORT_BASE", "48000")
        
        assert Config(env_file=str(env_file)).get_port_base() == 48000
    
    @pytest.mark.parametrize("section,values", [
        ("portAllocation", {"base": 50000, "ceiling": 40000}),
        ("portAllocation", {"base": 0}),
        ("portAllocation", {"ceiling": 70000}),
        ("template", {"portSuffix": "_port"}),
        ("index", {"fileName": ""}),
        ("lock", {"timeout": 0}),
        ("probe", {"enabled": "yes"}),
        ("logging", {"level": "loud"}),
    ])
    def test_validation(self, tmp_path, section, values):
        path = tmp_path / "gwt.json"
        path.write_text(json.dumps({section: values}))
        
        with pytest.raises(ConfigError):
            Config(str(path))
    
    def test_get_dot_notation(self):
        config = Config()
        
        assert config.get("lock.fileName") == "gwt-ports.lock"
        assert config.get("nope.nothing", "fallback") == "fallback"
