import pytest
from pydantic import ValidationError

from clinic_scheduler.core.config import ClinicConfig, Settings
from clinic_scheduler.core.db import to_async_url


def test_clinic_config_defaults():
    config = ClinicConfig()
    assert config.tz == "America/Sao_Paulo"
    assert config.default_country_code == "55"
    assert (config.doctor_high_confidence, config.doctor_min_margin) == (0.82, 0.12)


def test_clinic_config_is_frozen():
    config = ClinicConfig()
    with pytest.raises(ValidationError):
        config.tz = "UTC"


def test_settings_build_clinic_config():
    settings = Settings(database_url="sqlite+aiosqlite://", clinic_tz="America/Manaus", doctors_max_limit=20)
    clinic = settings.clinic()
    assert clinic.tz == "America/Manaus"
    assert clinic.doctors_max_limit == 20
    assert not settings.email_enabled


def test_cors_origins_list():
    settings = Settings(database_url="sqlite+aiosqlite://", cors_origins="http://a.test, http://b.test,")
    assert settings.cors_origins_list == ["http://a.test", "http://b.test"]


def test_to_async_url():
    assert (
        to_async_url("postgresql://u:p@db.example.com/clinic?sslmode=require&application_name=x")
        == "postgresql+asyncpg://u:p@db.example.com/clinic?application_name=x"
    )
    assert to_async_url("sqlite+aiosqlite:///./clinic.db") == "sqlite+aiosqlite:///./clinic.db"
