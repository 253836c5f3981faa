from __future__ import annotations

import json


def test_configure_logging_writes_json_events_to_stderr(capsys) -> None:
    import structlog

    from inventory_store.logging import configure_logging

    configure_logging("info")
    try:
        log = structlog.get_logger(component="inventory_store")
        log.debug("part_debug_details")
        log.info("part_loaded", entity="Part")
    finally:
        structlog.reset_defaults()

    captured = capsys.readouterr()
    assert captured.out == ""
    events = [json.loads(line) for line in captured.err.splitlines() if line.startswith("{")]
    assert [e["event"] for e in events] == ["part_loaded"]
    assert events[0]["component"] == "inventory_store"
    assert events[0]["level"] == "info"
    assert events[0]["entity"] == "Part"
