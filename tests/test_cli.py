import json

from safelink import cli


def test_scan_prints_result(capsys):
    assert cli.main(["scan", "https://www.google.com/", "--no-gate"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["safety"] == 10
    assert out["tier"] == "Safe"


def test_scan_invalid_input_exit_code(capsys):
    assert cli.main(["scan", "not a url", "--no-gate"]) == 2
    assert "valid address" in capsys.readouterr().err


def test_scan_save_then_history(store, capsys):
    assert cli.main(["scan", "http://badsite-login.com/verify-account", "--no-gate", "--save"]) == 0
    capsys.readouterr()
    assert cli.main(["history", "--limit", "3"]) == 0
    rows = json.loads(capsys.readouterr().out)
    assert len(rows) == 1
    assert rows[0]["tier"] == "High Risk"


def test_community_search(store, capsys):
    cli.main(["scan", "https://www.google.com/", "--no-gate", "--save"])
    capsys.readouterr()
    cli.main(["community", "--search", "nothing-matches"])
    assert json.loads(capsys.readouterr().out) == []
