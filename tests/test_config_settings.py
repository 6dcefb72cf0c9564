import importlib


def test_engine_defaults(monkeypatch):
    for key in ("DEFAULT_VAT_PCT", "DEFAULT_MINOR_TOOLS_PCT", "DIAGNOSTICS_TOLERANCE"):
        monkeypatch.delenv(key, raising=False)

    import dpwh_estimator.core.config as config

    config = importlib.reload(config)

    settings = config.Settings()
    assert settings.DEFAULT_VAT_PCT == 12.0
    assert settings.DEFAULT_MINOR_TOOLS_PCT == 10.0
    assert settings.DEFAULT_EQUIPMENT_RENTAL_RATE == 1420.0
    assert settings.DIAGNOSTICS_TOLERANCE == 1e-4
    assert settings.ESTIMATE_NUMBER_PREFIX == "EST"


def test_vat_override(monkeypatch):
    monkeypatch.setenv("DEFAULT_VAT_PCT", "0")

    import dpwh_estimator.core.config as config

    config = importlib.reload(config)

    assert config.Settings().DEFAULT_VAT_PCT == 0.0

    monkeypatch.delenv("DEFAULT_VAT_PCT", raising=False)
    importlib.reload(config)


def test_cors_origins_are_split(monkeypatch):
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.example, https://b.example")

    import dpwh_estimator.core.config as config

    config = importlib.reload(config)

    assert config.Settings().CORS_ALLOW_ORIGINS == ["https://a.example", "https://b.example"]

    monkeypatch.delenv("CORS_ALLOW_ORIGINS", raising=False)
    importlib.reload(config)
