"""Timeout configuration and camera profile persistence tests."""

import time

import pytest

from samsung_camera_sdk.config import CameraProfile, CameraProfileManager, TimeoutConfig
from samsung_camera_sdk.models import DetectedMode


@pytest.fixture
def profiles(tmp_path):
    with CameraProfileManager(tmp_path / "profiles.json") as manager:
        yield manager


def test_timeout_defaults():
    config = TimeoutConfig()

    assert config.s2l_handshake_attempts == 3
    assert config.s2l_handshake_timeout == 4.0
    assert config.dlna_heartbeat_interval == 30.0
    assert config.max_browse_depth > 0


def test_save_and_load(profiles):
    profiles.save(CameraProfile("AP_SSC_DV150F_0-FB:58:97", "192.168.102.1", DetectedMode.MOBILE_LINK, "DV150F"))

    profile = profiles.load("AP_SSC_DV150F_0-FB:58:97")
    assert profile.ip_address == "192.168.102.1"
    assert profile.mode is DetectedMode.MOBILE_LINK
    assert profile.model == "DV150F"
    assert profiles.load("unknown") is None


def test_save_overwrites_by_label(profiles):
    profiles.save(CameraProfile("cam", "192.168.101.1"))
    profiles.save(CameraProfile("cam", "192.168.104.1", DetectedMode.AUTO_SHARE))

    assert list(profiles.list_all()) == ["cam"]
    assert profiles.load("cam").ip_address == "192.168.104.1"


def test_last_is_most_recent(profiles):
    profiles.save(CameraProfile("first", "192.168.101.1"))
    time.sleep(0.01)
    profiles.save(CameraProfile("second", "192.168.103.1", DetectedMode.AUTO_SHARE))

    assert profiles.last().label == "second"


def test_last_on_empty_db(profiles):
    assert profiles.last() is None


def test_delete(profiles):
    profiles.save(CameraProfile("cam", "192.168.101.1"))

    assert profiles.delete("cam")
    assert not profiles.delete("cam")
    assert profiles.list_all() == {}
