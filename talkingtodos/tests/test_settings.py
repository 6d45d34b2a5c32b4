from __future__ import annotations

from talkingtodos.app.config import Settings, safe_error_detail, settings_public_summary, validate_for_env
from talkingtodos.app.config.redaction import redact_secrets, safe_dict
from talkingtodos.app.observability import hash_subject, safe_redact


def test_defaults(monkeypatch):
    for name in ("ORACLE_PROVIDER", "VOICE_TIMEOUT_MS", "TEMPLATE_TIMEOUT_MS", "MIN_RECORDING_MS", "MAX_AUDIO_BYTES", "PHOTO_TIMEOUT_MS"):
        monkeypatch.delenv(name, raising=False)
    s = Settings(_env_file=None)

    assert s.oracle_provider == "gemini"
    assert s.voice_timeout_ms == 30_000
    assert s.template_timeout_ms == 15_000
    assert s.synthesis_timeout_ms == 30_000
    assert s.photo_timeout_ms == 15_000
    assert s.min_recording_ms == 500
    assert s.max_audio_bytes == 10 * 1024 * 1024
    assert s.min_audio_bytes == 1024
    assert s.synthesis_sample_size == 5


def test_env_aliases_and_clamps(monkeypatch):
    monkeypatch.setenv("ORACLE_PROVIDER", " OpenAI_Compat ")
    monkeypatch.setenv("VOICE_TIMEOUT_MS", "-5")
    monkeypatch.setenv("ORACLE_MODEL", "m1")
    s = Settings(_env_file=None)

    assert s.oracle_provider == "openai_compat"
    assert s.voice_timeout_ms == 0
    assert s.synthesis_model == "m1"


def test_synthesis_model_override():
    s = Settings(_env_file=None, oracle_model="fast", oracle_synthesis_model="smart")
    assert s.synthesis_model == "smart"


def test_validate_for_env_reports_issues():
    s = Settings(_env_file=None, oracle_provider="openai_compat", oracle_api_key=None, oracle_base_url=None)
    issues = validate_for_env(s)["issues"]
    assert any("ORACLE_API_KEY" in issue for issue in issues)
    assert any("ORACLE_BASE_URL" in issue for issue in issues)

    ok = Settings(_env_file=None, oracle_provider="none")
    assert validate_for_env(ok)["issues"] == []
    assert ok.required_env_vars() == []


def test_public_summary_has_no_secrets():
    s = Settings(_env_file=None, oracle_api_key="AIzaSECRETSECRETSECRETSECRET")
    summary = settings_public_summary(s)
    assert "AIzaSECRET" not in str(summary)
    assert summary["timeouts_ms"]["template"] == 15_000


def test_redaction():
    assert "sk-abcdefgh1234" not in redact_secrets("failed with sk-abcdefgh1234")
    assert redact_secrets("GET /v1?key=abc&x=1") == "GET /v1?key=[redacted]&x=1"
    assert redact_secrets("Authorization: Bearer tok") == "Authorization: Bearer [redacted]"
    assert len(safe_error_detail("x" * 500)) == 200
    assert safe_dict({"audio": "...", "api_key": "k", "bytes": 10}) == {"bytes": 10}


def test_structured_log_redaction():
    event = {"event": "oracle_call", "transcription": "secret words", "texts": ["eggs"], "latency_ms": 4}
    assert safe_redact(event) == {"event": "oracle_call", "latency_ms": 4}
    nested = {"event": "x", "request": {"audio": "AAAA", "mime_type": "audio/m4a"}}
    assert safe_redact(nested) == {"event": "x", "request": {"mime_type": "audio/m4a"}}
    assert hash_subject("127.0.0.1") == hash_subject("127.0.0.1")
    assert hash_subject("127.0.0.1") != hash_subject(None)
