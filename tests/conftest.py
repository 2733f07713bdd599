from __future__ import annotations

import json
import stat
import sys
import textwrap
from dataclasses import dataclass
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


FAKE_FORMATTER_SOURCE = textwrap.dedent(
    """
    import json
    import os
    import sys
    import time
    from pathlib import Path

    HERE = Path(__file__).resolve().parent
    script = json.loads((HERE / "script.json").read_text(encoding="utf-8"))

    (HERE / "pid").write_text(str(os.getpid()), encoding="utf-8")
    data = sys.stdin.buffer.read()
    (HERE / "argv.json").write_text(json.dumps(sys.argv[1:]), encoding="utf-8")
    (HERE / "cwd").write_text(os.getcwd(), encoding="utf-8")

    sys.stdout.buffer.write(script.get("stdout", "").encode("utf-8"))
    sys.stdout.buffer.flush()
    (HERE / "stdin").write_bytes(data)
    if script.get("sleep"):
        time.sleep(script["sleep"])
    sys.stdout.buffer.write(script.get("stdout_tail", "").encode("utf-8"))
    sys.stdout.buffer.flush()
    sys.stderr.buffer.write(script.get("stderr", "").encode("utf-8"))
    sys.stderr.buffer.flush()
    sys.exit(script.get("exit_code", 0))
    """
).lstrip()


@dataclass(slots=True)
class FakeFormatter:
    """Scriptable stand-in for the clang-format executable."""

    root: Path
    path: Path

    def script(
        self,
        stdout: str = "",
        *,
        stderr: str = "",
        exit_code: int = 0,
        sleep: float = 0.0,
        stdout_tail: str = "",
    ) -> "FakeFormatter":
        payload = {
            "stdout": stdout,
            "stderr": stderr,
            "exit_code": exit_code,
            "sleep": sleep,
            "stdout_tail": stdout_tail,
        }
        (self.root / "script.json").write_text(json.dumps(payload), encoding="utf-8")
        return self

    def argv(self) -> list[str]:
        return json.loads((self.root / "argv.json").read_text(encoding="utf-8"))

    def received_stdin(self) -> bytes:
        return (self.root / "stdin").read_bytes()

    def cwd(self) -> str:
        return (self.root / "cwd").read_text(encoding="utf-8")

    def pid(self) -> int:
        return int((self.root / "pid").read_text(encoding="utf-8"))

    def has_read_input(self) -> bool:
        return (self.root / "stdin").exists()


@pytest.fixture()
def fake_formatter(tmp_path: Path) -> FakeFormatter:
    """Create an executable fake formatter that replays scripted output."""

    root = tmp_path / "fake-tool"
    root.mkdir()
    path = root / "clang-format"
    path.write_text(f"#!{sys.executable}\n{FAKE_FORMATTER_SOURCE}", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return FakeFormatter(root=root, path=path).script("<replacements></replacements>")
