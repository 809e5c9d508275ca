"""
Integration test fixtures — requires pd-ctl and a reachable PD endpoint.
"""

from __future__ import annotations

import os
import shutil
import subprocess

import pytest

PD_CTL = os.environ.get("PD_CTL_PATH") or "pd-ctl"
PD_ENDPOINT = os.environ.get("PD_ENDPOINT") or "http://127.0.0.1:2379"


def _pd_reachable() -> bool:
    if not shutil.which(PD_CTL):
        return False
    try:
        result = subprocess.run(
            [PD_CTL, "-u", PD_ENDPOINT, "health"],
            capture_output=True,
            timeout=5,
        )
        return result.returncode == 0
    except (OSError, subprocess.SubprocessError):
        return False


skip_no_pd = pytest.mark.skipif(
    not _pd_reachable(),
    reason="pd-ctl or PD endpoint not reachable — skipping integration tests",
)
