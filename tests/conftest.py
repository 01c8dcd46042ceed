import subprocess
from collections.abc import Callable
from typing import Any

import pytest


class FakeRun:
    """Stands in for subprocess.run; answers by the first matching rule."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.rules: list[tuple[str, Any]] = []

    def on(self, needle: str, returncode: int = 0, stdout: str = "", stderr: str = "",
           side_effect: Callable[..., None] | None = None) -> None:
        self.rules.append((needle, (returncode, stdout, stderr, side_effect)))

    def __call__(self, argv, **kwargs):
        self.calls.append({"argv": list(argv), **kwargs})
        joined = " ".join(argv)
        for needle, (rc, out, err, side_effect) in self.rules:
            if needle in joined:
                if side_effect is not None:
                    side_effect(argv, **kwargs)
                return subprocess.CompletedProcess(argv, rc, out, err)
        return subprocess.CompletedProcess(argv, 0, "", "")

    def commands(self, needle: str) -> list[list[str]]:
        return [c["argv"] for c in self.calls if needle in " ".join(c["argv"])]


class ScriptedInput:
    """Input provider fed from lists instead of a terminal."""

    def __init__(self, answers=None, confirms=None) -> None:
        self.answers = list(answers or [])
        self.confirms = list(confirms or [])
        self.prompts: list[tuple[str, str]] = []
        self.questions: list[str] = []

    def prompt(self, label: str, default: str = "", secret: bool = False, field: str = "") -> str:
        self.prompts.append((label, default))
        if not self.answers:
            raise AssertionError(f"unexpected prompt: {label}")
        return self.answers.pop(0)

    def confirm(self, question: str, default: bool = False) -> bool:
        self.questions.append(question)
        if not self.confirms:
            raise AssertionError(f"unexpected confirmation: {question}")
        return self.confirms.pop(0)


@pytest.fixture
def fake_run(monkeypatch: pytest.MonkeyPatch) -> FakeRun:
    fake = FakeRun()
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


@pytest.fixture
def acme_home(tmp_path):
    home = tmp_path / "acme-home"
    home.mkdir()
    return home


@pytest.fixture
def installed_acme(acme_home):
    script = acme_home / "acme.sh"
    script.write_text("#!/bin/sh\n")
    script.chmod(0o755)
    return acme_home
