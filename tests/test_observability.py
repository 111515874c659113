import json
from pathlib import Path

from appflake.observability import StructuredLogger


def test_logger_filters_records_by_platform(tmp_path: Path) -> None:
    logger = StructuredLogger()
    logger.log(
        operation="evaluate",
        platform="x86_64-linux",
        phase="gate",
        component="flake",
        message="checking toolchain version",
    )
    logger.log(
        operation="evaluate",
        platform="aarch64-linux",
        phase="gate",
        component="flake",
        message="checking toolchain version",
    )
    logger.log(
        operation="evaluate",
        platform="x86_64-linux",
        phase=None,
        component="flake",
        message="platform failed",
        level="error",
        extra={"code": "E_PRECONDITION"},
    )

    assert len(logger.records_for_platform("x86_64-linux")) == 2
    assert logger.phases_for_platform("x86_64-linux") == ["gate"]

    path = logger.to_json_lines(tmp_path / "logs" / "flake.jsonl")
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    last = json.loads(lines[-1])
    assert last["level"] == "error"
    assert last["extra"] == {"code": "E_PRECONDITION"}
    assert "extra" not in json.loads(lines[0])
