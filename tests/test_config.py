from config import DEFAULT_DB, MB, ONE_YEAR, Settings, normalize_database_url


def test_normalize_database_url():
    assert normalize_database_url(None) == DEFAULT_DB
    assert normalize_database_url("postgres://u:p@db/portal") == "postgresql+psycopg2://u:p@db/portal?sslmode=require"
    assert normalize_database_url("postgresql://db/portal?sslmode=disable") == (
        "postgresql+psycopg2://db/portal?sslmode=disable")
    assert normalize_database_url("sqlite:///x.db") == "sqlite:///x.db"


def test_defaults():
    s = Settings.from_env({})
    assert s.signed_urls is True
    assert s.signed_url_ttl == ONE_YEAR
    assert s.max_form_upload_bytes == 10 * MB
    assert s.max_binary_upload_bytes == 50 * MB
    assert s.max_request_bytes == 51 * MB
    assert s.storage_bucket == "clipstech"
    assert not s.production


def test_from_env():
    s = Settings.from_env({
        "APP_ENV": "production",
        "S3_BUCKET": "portal-docs",
        "STORAGE_SIGNED_URLS": "off",
        "CORS_ORIGINS": "https://portal.example.ac.ke, https://admin.example.ac.ke",
        "EXAM_CARD_REQUIRES_CLEARANCE": "yes",
        "MAX_BINARY_UPLOAD_BYTES": "1048576",
    })
    assert s.production
    assert s.storage_bucket == "portal-docs"
    assert s.signed_urls is False
    assert s.cors_origins == ["https://portal.example.ac.ke", "https://admin.example.ac.ke"]
    assert s.exam_card_requires_clearance is True
    assert s.max_binary_upload_bytes == MB


def test_trace_only_outside_production(app, settings, client, admin_headers, student, upload, store, pdf):
    store.fail_put = True
    assert "trace" in upload("exam-cards", pdf()).get_json()
    app.extensions["portal.settings"] = settings.model_copy(update={"environment": "production"})
    assert "trace" not in upload("exam-cards", pdf()).get_json()
