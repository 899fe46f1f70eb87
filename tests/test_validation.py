import pytest
from pydantic import ValidationError as PydanticValidationError

from lapboard_core import EngineConfig, InputSanitizer, ValidatedCmd, load_config


def test_validated_cmd_normalizes_type_and_flag():
    cmd = ValidatedCmd(type=" toggle_flag ", flag="SC")
    assert cmd.type == "TOGGLE_FLAG"
    assert cmd.flag == "sc"
    assert cmd.to_payload() == {"type": "TOGGLE_FLAG", "flag": "sc"}


def test_validated_cmd_coerces_numeric_driver_id():
    cmd = ValidatedCmd(type="REGISTER_LAP", driverId="3")
    assert cmd.driverId == 3


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "REGISTER_LAP"},
        {"type": "REGISTER_LAP", "driverId": 0},
        {"type": "REGISTER_LAP", "driverId": 5},
        {"type": "REGISTER_LAP", "driverId": True},
        {"type": "SET_DRIVERS_COUNT", "count": False},
        {"type": "SET_ACTIVE_DRIVER"},
        {"type": "SET_DRIVERS_COUNT"},
        {"type": "SET_DRIVERS_COUNT", "count": 6},
        {"type": "TOGGLE_FLAG"},
        {"type": "TOGGLE_FLAG", "flag": "yellow"},
        {"type": "SELF_DESTRUCT"},
        {"type": ""},
    ],
)
def test_validated_cmd_rejects_bad_payloads(payload):
    with pytest.raises(PydanticValidationError):
        ValidatedCmd(**payload)


def test_validate_and_sanitize_wraps_errors_as_value_error(caplog):
    with caplog.at_level("WARNING"):
        with pytest.raises(ValueError, match="Invalid command"):
            InputSanitizer.validate_and_sanitize_cmd({"type": "REGISTER_LAP", "driverId": 9})
    assert "Command validation failed" in caplog.text


def test_extra_fields_are_dropped():
    cmd = InputSanitizer.validate_and_sanitize_cmd({"type": "PAUSE", "source": "keyboard"})
    assert cmd.to_payload() == {"type": "PAUSE"}


def test_sanitize_driver_name_keeps_diacritics():
    assert InputSanitizer.sanitize_driver_name("  Kierowca Łódź\x00 ") == "Kierowca Łódź"
    assert InputSanitizer.sanitize_driver_name('<script>"x"</script>') == "scriptx/script"
    assert len(InputSanitizer.sanitize_driver_name("a" * 200)) == 64


def test_engine_config_defaults_and_bounds():
    cfg = EngineConfig()
    assert (cfg.light_count, cfg.light_interval_ms, cfg.debounce_ms) == (5, 700, 300)
    assert cfg.default_drivers_count == 2
    with pytest.raises(PydanticValidationError):
        EngineConfig(light_count=0)
    with pytest.raises(PydanticValidationError):
        EngineConfig(default_drivers_count=5)


def test_load_config_reads_state_path_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("LAPBOARD_STATE_PATH", str(tmp_path / "s.json"))
    assert load_config().state_path == tmp_path / "s.json"
    assert load_config(debounce_ms=50).debounce_ms == 50
