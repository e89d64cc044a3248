"""
Tests for PlatformCapability
"""

import os

import pytest
from conftest import posix_only

from core.exceptions import DriverUnavailableException
from core.platform import PlatformCapability


class TestPlatformCapability:
    """Test binary naming and discovery"""

    @pytest.mark.parametrize(
        "system,suffix",
        [("Linux", "-linux"), ("Darwin", "-mac"), ("Windows", ".exe"), ("win32", ".exe"), ("FreeBSD", "-fbsd")],
    )
    def test_suffixes(self, tmp_path, system, suffix):
        """Test each OS family maps to its binary suffix"""
        assert PlatformCapability.for_system(system, tmp_path).suffix == suffix

    def test_unknown_os(self, tmp_path):
        """Test OS families without binaries are unavailable"""
        with pytest.raises(DriverUnavailableException):
            PlatformCapability.for_system("plan9", tmp_path)

    def test_suffixed_binary_preferred(self, tmp_path):
        """Test the platform-suffixed name wins over the plain one"""
        (tmp_path / "jpegtran").write_text("plain")
        (tmp_path / "jpegtran-linux").write_text("suffixed")
        platform = PlatformCapability.for_system("linux", tmp_path)

        assert platform.find_tool("jpegtran") == tmp_path / "jpegtran-linux"

    def test_plain_name_fallback(self, tmp_path):
        """Test the plain name is used when no suffixed binary exists"""
        (tmp_path / "optipng").write_text("plain")
        platform = PlatformCapability.for_system("darwin", tmp_path)

        assert platform.find_tool("optipng") == tmp_path / "optipng"

    def test_missing_tool(self, tmp_path):
        """Test missing binaries are reported as None"""
        assert PlatformCapability.for_system("linux", tmp_path).find_tool("cwebp") is None

    @posix_only
    def test_binary_made_executable(self, tmp_path):
        """Test non-executable binaries are chmod-ed 0755"""
        binary = tmp_path / "gifsicle-linux"
        binary.write_text("#!/bin/sh\n")
        binary.chmod(0o644)

        PlatformCapability.for_system("linux", tmp_path).find_tool("gifsicle")

        assert os.access(binary, os.X_OK)
