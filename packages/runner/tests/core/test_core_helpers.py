from __future__ import annotations

from pathlib import Path

from snippet_runner.core import errors, fs, hashing, json, provenance, time


def test_error_record_from_exc() -> None:
    try:
        raise ValueError("boom")
    except ValueError as exc:
        rec = errors.error_record_from_exc(exc)
    assert rec.exc_type == "ValueError"
    assert rec.message == "boom"
    assert "ValueError: boom" in rec.traceback


def test_error_hierarchy() -> None:
    assert issubclass(errors.InvalidArgument, errors.ResolutionError)
    assert issubclass(errors.InvalidArgument, ValueError)
    assert issubclass(errors.ResourceNotFound, errors.ResolutionError)
    assert issubclass(errors.InvalidManifest, errors.ResolutionError)
    for cls in (errors.NetworkFailed, errors.ConversionFailed, errors.RequestCancelled):
        assert issubclass(cls, errors.RunnerError)
    assert "x.wmod" in str(errors.ResourceNotFound("x.wmod"))


def test_timer_and_durations() -> None:
    with provenance.Timer() as t:
        pass
    assert t.duration_ms is not None and t.duration_ms >= 0
    assert time.format_duration_ms(12) == "12 ms"
    assert time.format_duration_ms(1500) == "1.50 s"
    assert time.utc_now_iso().endswith("Z")


def test_fingerprint() -> None:
    assert (
        hashing.sha256_bytes(b"abc")
        == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )
    assert hashing.fingerprint(b"abc") == "ba7816bf8f"
    assert len(hashing.fingerprint(b"abc", length=16)) == 16


def test_atomic_writes_and_json(tmp_path: Path) -> None:
    p = tmp_path / "d" / "blob.bin"
    fs.atomic_write_bytes(p, b"\x00\x01")
    assert p.read_bytes() == b"\x00\x01"
    fs.atomic_write_bytes(p, b"new")
    assert p.read_bytes() == b"new"
    assert not list(p.parent.glob("*.tmp"))

    out = tmp_path / "m.json"
    json.atomic_write_json(out, {"b": 1, "a": 2})
    assert out.read_text(encoding="utf-8") == "{\n  \"a\": 2,\n  \"b\": 1\n}\n"
    assert json.stable_json_dumps({"b": 1, "a": 2}, indent=None) == '{"a":2,"b":1}'
