import json
import os

import pytest

from fatimacmd.lcslack import (
    SlackConfig,
    load_config,
    main,
    save_config,
    set_all_status,
    set_status,
    status_lines,
    webhook_config_path,
)


def _write(path, data):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as fh:
        json.dump(data, fh)


SAMPLE = {
    "alarm": {"active": True, "url": "https://hooks.example.com/a"},
    "event": {"active": False, "url": "https://hooks.example.com/e", "channel": "ops"},
}


def test_webhook_config_path():
    assert webhook_config_path("/opt/fatima") == "/opt/fatima/data/saturn/webhook.slack"


def test_str_with_and_without_channel():
    plain = SlackConfig(active=True, url="u")
    assert str(plain) == "activate: [true], hookUri: [u]"
    with_channel = SlackConfig(active=False, url="u", channel="c")
    assert str(with_channel) == "activate: [false], hookUri: [u], channel: [c]"


def test_load_config(tmp_path):
    path = str(tmp_path / "webhook.slack")
    _write(path, SAMPLE)
    config = load_config(path)
    assert config["alarm"] == SlackConfig(active=True, url="https://hooks.example.com/a")
    assert config["event"].channel == "ops"


def test_save_load_round_trip(tmp_path):
    path = str(tmp_path / "webhook.slack")
    config = {
        "event": SlackConfig(active=True, url="https://hooks.example.com/x?a=1&b=2", channel="dev"),
        "alarm": SlackConfig(active=False, url="https://hooks.example.com/y"),
    }
    save_config(path, config)
    assert load_config(path) == config


def test_save_format_escapes_and_indents(tmp_path):
    path = str(tmp_path / "webhook.slack")
    save_config(path, {"alarm": SlackConfig(active=True, url="a&b")})
    with open(path) as fh:
        text = fh.read()
    assert "\\u0026" in text
    assert "\n\t\"alarm\"" in text
    assert "channel" not in text


def test_load_rejects_bad_type(tmp_path):
    path = str(tmp_path / "webhook.slack")
    _write(path, {"alarm": {"active": "yes"}})
    with pytest.raises(ValueError):
        load_config(path)


def test_status_lines_reports_missing_parts():
    lines = status_lines({"alarm": SlackConfig(url="u")})
    assert lines[0] == "alarm: activate: [false], hookUri: [u]"
    assert "not found event config" in lines
    assert "not found alarm config" not in lines


def test_set_all_status(tmp_path):
    path = str(tmp_path / "webhook.slack")
    _write(path, SAMPLE)
    set_all_status(path, False)
    assert all(not c.active for c in load_config(path).values())
    set_all_status(path, True)
    assert all(c.active for c in load_config(path).values())


def test_set_status_single_part(tmp_path):
    path = str(tmp_path / "webhook.slack")
    _write(path, SAMPLE)
    set_status(path, "event", True)
    config = load_config(path)
    assert config["event"].active is True
    assert config["alarm"].active is True


def test_set_status_unknown_part(tmp_path):
    path = str(tmp_path / "webhook.slack")
    _write(path, SAMPLE)
    with pytest.raises(LookupError, match="not found nothing part in config"):
        set_status(path, "nothing", True)


def test_set_status_missing_file(tmp_path):
    with pytest.raises(OSError, match="fail to load slack webhook file"):
        set_status(str(tmp_path / "missing"), "alarm", True)


def test_main_without_file(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("FATIMA_HOME", str(tmp_path))
    main([])
    assert capsys.readouterr().out.startswith("fail to load slack webhook file : ")


def test_main_invalid_switch_prints_usage(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("FATIMA_HOME", str(tmp_path))
    main(["maybe"])
    assert "display/control slack notification for package" in capsys.readouterr().out


def test_main_sets_part(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("FATIMA_HOME", str(tmp_path))
    path = webhook_config_path(str(tmp_path))
    _write(path, SAMPLE)
    main(["ALARM", "False"])
    out = capsys.readouterr().out
    assert "set alarm to false" in out
    assert load_config(path)["alarm"].active is False