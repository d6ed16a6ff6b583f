import pytest

from clinic_backend.core import config


def test_get_bool_accepts_common_truthy_values() -> None:
    assert config._get_bool(' Yes ') is True
    assert config._get_bool('0') is False
    assert config._get_bool(None, default=True) is True


def test_get_list_splits_comma_separated_origins() -> None:
    assert config._get_list('http://a.test, http://b.test,', []) == ['http://a.test', 'http://b.test']
    assert config._get_list(None, ['http://default.test']) == ['http://default.test']


def test_validate_runtime_config_accepts_defaults() -> None:
    config.validate_runtime_config()


@pytest.mark.parametrize(
    ('name', 'value'),
    [
        ('SLOT_DURATION_MINUTES', 0),
        ('SLOT_DURATION_MINUTES', 7),
        ('REMINDER_LEAD_HOURS', 0),
        ('MAINTENANCE_INTERVAL_SECONDS', -1),
        ('CLINIC_TIMEZONE', 'Mars/Olympus_Mons'),
    ],
)
def test_validate_runtime_config_rejects_bad_values(monkeypatch: pytest.MonkeyPatch, name: str, value) -> None:
    monkeypatch.setattr(config, name, value)

    with pytest.raises(RuntimeError):
        config.validate_runtime_config()
