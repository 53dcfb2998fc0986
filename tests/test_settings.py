import pytest
from pydantic import ValidationError

from nearmap.config.settings import Settings, get_logging_config, get_settings


@pytest.fixture
def fresh_settings():
    # get_settings() is lru_cached; tests that touch env must not leak into others.
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults_load_from_packaged_yaml(fresh_settings):
    settings = get_settings()
    assert settings.app.name == "NearMap"
    assert settings.sensor.kind == "none"
    assert settings.ranking.nearby.max_distance_km == 50
    assert settings.viewport.zoom.world == 2
    assert settings.regions.source == ""


def test_env_overrides_are_whitelisted(monkeypatch, fresh_settings):
    monkeypatch.setenv("NEARMAP_LOG_LEVEL", "debug")
    monkeypatch.setenv("NEARMAP_SENSOR_KIND", " IP ")
    monkeypatch.setenv("NEARMAP_REGIONS_SOURCE", "data/regions/regions.yaml")
    settings = get_settings()
    assert settings.app.log_level == "debug"
    assert settings.sensor.kind == "ip"
    assert settings.regions.source == "data/regions/regions.yaml"


def test_external_config_path(monkeypatch, tmp_path, fresh_settings):
    path = tmp_path / "nearmap.yaml"
    path.write_text("acquisition:\n  fast:\n    timeout_ms: 2500\n    max_cache_age_ms: 60000\n", encoding="utf-8")
    monkeypatch.setenv("NEARMAP_CONFIG_PATH", str(path))
    settings = get_settings()
    assert settings.acquisition.fast.timeout_ms == 2500
    assert settings.acquisition.precise.max_cache_age_ms == 0


def test_config_root_must_be_mapping(monkeypatch, tmp_path, fresh_settings):
    path = tmp_path / "bad.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    monkeypatch.setenv("NEARMAP_CONFIG_PATH", str(path))
    with pytest.raises(ValueError, match="expected a mapping"):
        get_settings()


def test_invalid_values_are_rejected():
    with pytest.raises(ValidationError):
        Settings.model_validate({"viewport": {"zoom_min": 10, "zoom_max": 3}})
    with pytest.raises(ValidationError):
        Settings.model_validate({"sensor": {"kind": "gps"}})


def test_logging_config_is_a_fresh_mapping():
    config = get_logging_config()
    config["root"]["level"] = "DEBUG"
    assert get_logging_config()["root"]["level"] == "INFO"
