"""Tests for the main.py command line: keygen, inspect, serve."""

from __future__ import annotations

import main
from auth import codec
from auth.sessions import encode_user
from core.config import key_to_bytes


def test_keygen_prints_usable_key(capsys):
    assert main.main(["keygen"]) == 0
    key = capsys.readouterr().out.strip()
    assert key.startswith("hex:")
    assert len(key_to_bytes(key)) == 32


def test_inspect_session_token(capsys, session_signer):
    token = codec.encode(1_700_000_000 * 10**9, encode_user("alice"), session_signer)
    assert main.main(["inspect", token]) == 0
    out = capsys.readouterr().out
    assert "session" in out
    assert "2023-11-14" in out
    assert "NOT VERIFIED" in out


def test_inspect_state_token(capsys, state_signer):
    token = codec.encode(1_700_000_000 * 10**9, b"", state_signer)
    assert main.main(["inspect", token]) == 0
    assert "kind (by shape): state" in capsys.readouterr().out


def test_inspect_out_of_range_timestamp(capsys, state_signer):
    token = codec.encode(-(2**63), b"", state_signer)
    assert main.main(["inspect", token]) == 0
    assert "out of range" in capsys.readouterr().out


def test_inspect_malformed(capsys):
    assert main.main(["inspect", "garbage"]) == 1
    assert "Malformed" in capsys.readouterr().out


def test_serve_runs_uvicorn(monkeypatch):
    calls = []
    monkeypatch.setattr("uvicorn.run", lambda app, **kw: calls.append((app, kw)))
    assert main.main(["serve", "--port", "9000"]) == 0
    assert calls == [("asgi:app", {"host": "127.0.0.1", "port": 9000, "reload": False})]
