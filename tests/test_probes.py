"""Tests for idle-time probes."""

from __future__ import annotations

import sys
from datetime import timedelta

import pytest

from work_tracker.probes import StaticProbe, XprintidleProbe, default_probe


def test_static_probe_answers_what_it_is_told():
    probe = StaticProbe(timedelta(seconds=3))
    assert probe.idle_since() == timedelta(seconds=3)
    probe.idle = None
    assert probe.idle_since() is None


def test_missing_idle_utility_is_unknown(caplog):
    probe = XprintidleProbe(command="work-tracker-no-such-idle-command")
    assert probe.idle_since() is None
    assert probe.idle_since() is None
    assert caplog.text.count("Idle time unavailable") == 1


@pytest.mark.skipif(sys.platform == "win32", reason="X11 probe is the non-Windows default")
def test_default_probe_off_windows():
    assert isinstance(default_probe(), XprintidleProbe)
