from lapboard_core import MemoryStore, TimingEngine, command_for_key, default_state, handle_key


def test_key_bindings():
    state = default_state()
    assert command_for_key("Enter", state) == "start"
    assert command_for_key(" ", state) == {"type": "TOGGLE_PAUSE"}
    assert command_for_key("Tab", state) == {"type": "NEXT_ACTIVE_DRIVER"}
    assert command_for_key("S", state) == {"type": "TOGGLE_FLAG", "flag": "sc"}
    assert command_for_key("v", state) == {"type": "TOGGLE_FLAG", "flag": "vsc"}
    assert command_for_key("r", state) == {"type": "HARD_RESET"}
    assert command_for_key("e", state) == "export"
    assert command_for_key("2", state) == {"type": "REGISTER_LAP", "driverId": 2}
    assert command_for_key("q", state) is None


def test_digit_above_driver_count_and_repeats_are_ignored():
    state = default_state()
    assert command_for_key("3", state) is None
    assert command_for_key("0", state) is None
    assert command_for_key("1", state, repeat=True) is None
    state["driversCount"] = 4
    assert command_for_key("4", state) == {"type": "REGISTER_LAP", "driverId": 4}


def test_handle_key_drives_engine(clock, scheduler):
    engine = TimingEngine(MemoryStore(), clock=clock, scheduler=scheduler)
    assert handle_key(engine, "Enter") is True
    scheduler.advance(3_500)
    clock.advance(61_000)
    handle_key(engine, "1")
    handle_key(engine, "1", repeat=True)
    handle_key(engine, " ")
    assert engine.state["drivers"][1]["laps"] == [61_000]
    assert not engine.is_running()
    assert handle_key(engine, "e").splitlines()[1].startswith("Driver 1,1,61000")
    assert handle_key(engine, "x") is None
