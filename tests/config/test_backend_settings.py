"""Backend connection settings tests."""

import pytest

from kyc_config.settings import BackendSettings, get_backend_settings


class TestApiBaseUrl:

    def test_defaults(self):
        settings = BackendSettings()
        assert settings.api_base_url == "http://localhost:8000/api/v1"
        assert settings.timeout_seconds == 15.0

    def test_trailing_slashes_collapsed(self):
        settings = BackendSettings(base_url="https://api.example.com/", api_prefix="/api/")
        assert settings.api_base_url == "https://api.example.com/api/v1"

    def test_empty_parts_omitted(self):
        settings = BackendSettings(base_url="https://api.example.com", api_prefix="", api_version="")
        assert settings.api_base_url == "https://api.example.com"

    def test_build_url(self):
        assert BackendSettings().build_url("/admin/kyc") == "http://localhost:8000/api/v1/admin/kyc"


class TestFromEnvironment:

    def test_empty_environment_gives_defaults(self):
        assert get_backend_settings({}) == BackendSettings()

    def test_overrides(self):
        settings = get_backend_settings({
            "KYC_BACKEND_URL": "https://backend.internal",
            "KYC_BACKEND_API_VERSION": "v2",
            "KYC_BACKEND_TIMEOUT": "4.5",
        })
        assert settings.api_base_url == "https://backend.internal/api/v2"
        assert settings.timeout_seconds == 4.5

    @pytest.mark.parametrize("value", ["0", "-3"])
    def test_non_positive_timeout(self, value):
        with pytest.raises(ValueError, match="must be positive"):
            get_backend_settings({"KYC_BACKEND_TIMEOUT": value})

    def test_non_numeric_timeout(self):
        with pytest.raises(ValueError):
            get_backend_settings({"KYC_BACKEND_TIMEOUT": "fast"})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("KYC_BACKEND_URL", "http://from-env:9000")
        assert get_backend_settings().base_url == "http://from-env:9000"
