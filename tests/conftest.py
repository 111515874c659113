"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from appflake.backends.inprocess import InProcessBackend

CARGO_TOML = """\
[package]
name = "dev-heppen-webapps"
version = "2.0.1"
edition = "2024"

[[bin]]
name = "dev-heppen-webapps-webview"
path = "src/bin/webview.rs"

[dependencies]
anyhow = "1"
"""

CARGO_LOCK = """\
version = 4

[[package]]
name = "anyhow"
version = "1.0.98"
source = "registry+https://github.com/rust-lang/crates.io-index"
checksum = "e16d2d3311acee920a9eb8d33b8cbc1787ce4a264e85f964c2404b969bdcd487"

[[package]]
name = "dev-heppen-webapps"
version = "2.0.1"
dependencies = [
 "anyhow",
]
"""


@pytest.fixture
def inprocess_backend() -> InProcessBackend:
    """Provide an in-process backend for tests that evaluate the flake."""
    return InProcessBackend()


@pytest.fixture
def app_source(tmp_path: Path) -> Path:
    """A small application checkout shaped like the web apps repository."""
    root = tmp_path / "web-apps"
    files = {
        "Cargo.toml": CARGO_TOML,
        "Cargo.lock": CARGO_LOCK,
        "src/main.rs": "fn main() {\n    println!(\"web apps\");\n}\n",
        "src/bin/webview.rs": "fn main() {}\n",
        "src/lib.rs": "pub fn launch() {}\n",
        "resources/icons/app.svg": "<svg/>\n",
        "i18n/en/app.ftl": "app-title = Quick Web Apps\n",
        "justfile": "install:\n    install -Dm0755 {{bin-src}} {{prefix}}/bin/dev.heppen.webapps\n",
        "notes.txt": "not part of the build\n",
        "target/release/stale": "old build output\n",
    }
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root
