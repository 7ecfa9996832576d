from __future__ import annotations

from pathlib import Path

import pytest
from helpers import FakeScanner, make_report, make_result, make_violation

import ally.cli as cli_mod
from ally.engine.types import AllyReport


@pytest.fixture()
def sample_report(tmp_path: Path) -> AllyReport:
    index = tmp_path / "index.html"
    about = tmp_path / "about.html"
    return make_report(
        make_result(
            str(index),
            make_violation("image-alt", "critical", nodes=2),
            make_violation("color-contrast", "serious", html='<p style="color:#aaa">Low</p>'),
        ),
        make_result(str(about), make_violation("image-alt", "critical")),
    )


@pytest.fixture()
def fake_scanner(monkeypatch) -> type[FakeScanner]:
    FakeScanner.instances = []
    FakeScanner.init_error = None
    monkeypatch.setattr(cli_mod, "AccessibilityScanner", FakeScanner)
    return FakeScanner
