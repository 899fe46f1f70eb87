from lapboard_core import (
    CSV_HEADER,
    apply_command,
    build_view,
    default_state,
    export_csv,
    export_rows,
    format_ms,
)


def _race():
    state = default_state()
    apply_command(state, {"type": "SET_DRIVERS_COUNT", "count": 3}, 0)
    apply_command(state, {"type": "START_SEQUENCE"}, 0)
    apply_command(state, {"type": "LIGHTS_OUT"}, 0)
    apply_command(state, {"type": "REGISTER_LAP", "driverId": 2}, 83_456)
    apply_command(state, {"type": "REGISTER_LAP", "driverId": 1}, 90_000)
    apply_command(state, {"type": "REGISTER_LAP", "driverId": 2}, 165_000)
    return state


def test_format_ms():
    assert format_ms(0) == "00:00.000"
    assert format_ms(83_456) == "01:23.456"
    assert format_ms(3_600_000) == "60:00.000"
    assert format_ms(-5) == "00:00.000"
    assert format_ms(999.9) == "00:00.999"


def test_export_rows_in_driver_then_lap_order():
    rows = export_rows(_race())
    assert [(r.driver, r.lap_index, r.lap_ms, r.total_ms) for r in rows] == [
        ("Driver 1", 1, 90_000, 90_000),
        ("Driver 2", 1, 83_456, 83_456),
        ("Driver 2", 2, 81_544, 165_000),
    ]


def test_export_skips_inactive_drivers():
    state = _race()
    apply_command(state, {"type": "SET_DRIVERS_COUNT", "count": 1}, 170_000)
    assert {r.driver for r in export_rows(state)} == {"Driver 1"}


def test_export_csv_text():
    lines = export_csv(_race()).splitlines()
    assert lines[0] == ",".join(CSV_HEADER)
    assert lines[1] == "Driver 1,1,90000,01:30.000,90000,01:30.000"
    assert lines[3] == "Driver 2,2,81544,01:21.544,165000,02:45.000"
    assert len(lines) == 4


def test_export_csv_empty_session_has_header_only():
    assert export_csv(default_state()).splitlines() == [",".join(CSV_HEADER)]


def test_view_running_session():
    state = _race()
    apply_command(state, {"type": "TOGGLE_FLAG", "flag": "sc"}, 165_000)
    view = build_view(state, now=200_000)

    assert view["status"] == "RUNNING"
    assert view["sessionTimeMs"] == 200_000
    assert view["sessionTime"] == "03:20.000"
    assert view["flags"] == {"sc": True, "vsc": False}
    assert view["controls"] == {"canStart": False, "canPause": True, "canResume": False}
    assert [d["id"] for d in view["drivers"]] == [1, 2, 3]
    assert view["drivers"][0]["active"] is True
    assert view["drivers"][1]["bestFmt"] == "01:21.544"
    assert view["drivers"][2]["bestFmt"] is None

    ranking = view["ranking"]
    assert [r["driver_id"] for r in ranking] == [2, 1, 3]
    assert [r["position"] for r in ranking] == [1, 2, 3]
    assert ranking[0]["is_fastest"] is True


def test_view_status_while_starting_and_paused():
    state = default_state()
    apply_command(state, {"type": "START_SEQUENCE"}, 0)
    apply_command(state, {"type": "LIGHT_ON"}, 0)
    view = build_view(state, now=500)
    assert view["status"] == "STARTING"
    assert view["lightsOn"] == 1
    assert view["controls"] == {"canStart": False, "canPause": False, "canResume": False}

    apply_command(state, {"type": "LIGHTS_OUT"}, 3_500)
    apply_command(state, {"type": "PAUSE"}, 4_000)
    view = build_view(state, now=10_000)
    assert view["status"] == "PAUSED"
    assert view["sessionTime"] == "00:00.500"
    assert view["controls"] == {"canStart": True, "canPause": False, "canResume": True}
