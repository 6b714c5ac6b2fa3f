"""Tests for pve_installer.hypervisor module."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from pve_installer.exceptions import InstallerError
from pve_installer.hypervisor import ProxmoxHost, parse_disk_volume, parse_storage_status

PVESM_STATUS = """\
Name             Type     Status           Total            Used       Available        %
local             dir     active        98497780        12345678        81101816   12.53%
local-lvm     lvmthin     active       832888832        41644441       791244391    5.00%
"""


def _completed(cmd, stdout="", returncode=0):
    return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr="")


class TestParseStorageStatus:
    def test_parses_each_storage(self):
        targets = parse_storage_status(PVESM_STATUS)
        assert [t.identifier for t in targets] == ["local", "local-lvm"]
        assert targets[0].backend_type == "dir"
        assert targets[0].free_bytes == 81101816 * 1024
        assert targets[1].free_label == "754.59GiB"

    def test_header_only_yields_nothing(self):
        assert parse_storage_status(PVESM_STATUS.splitlines()[0]) == []

    def test_skips_malformed_lines(self):
        output = PVESM_STATUS + "broken line\nnas nfs inactive 0 0 n/a 0%\n"
        assert len(parse_storage_status(output)) == 2


class TestParseDiskVolume:
    def test_sata_disk(self):
        config = "boot: order=sata0\ncores: 1\nsata0: local-lvm:vm-100-disk-0,size=3G\n"
        assert parse_disk_volume(config) == "local-lvm:vm-100-disk-0"

    def test_scsi_disk(self):
        config = "scsi1: local:100/vm-100-disk-0.qcow2,size=3G\n"
        assert parse_disk_volume(config) == "local:100/vm-100-disk-0.qcow2"

    def test_no_disk(self):
        assert parse_disk_volume("memory: 1024\nnet0: virtio=AA:BB\n") is None


class TestProxmoxHost:
    def test_next_vmid(self):
        with patch("pve_installer.hypervisor.run", return_value=_completed([], "101\n")) as mock_run:
            assert ProxmoxHost().next_vmid() == 101
        mock_run.assert_called_once_with(["pvesh", "get", "/cluster/nextid"])

    def test_next_vmid_garbage_raises(self):
        with patch("pve_installer.hypervisor.run", return_value=_completed([], "oops")):
            with pytest.raises(InstallerError, match="next VM id"):
                ProxmoxHost().next_vmid()

    def test_image_storages_filters_by_content(self):
        with patch("pve_installer.hypervisor.run", return_value=_completed([], PVESM_STATUS)) as mock_run:
            targets = ProxmoxHost().image_storages()
        mock_run.assert_called_once_with(["pvesm", "status", "-content", "images"])
        assert len(targets) == 2

    def test_vm_exists_uses_exit_status(self):
        with patch("pve_installer.hypervisor.run", return_value=_completed([], returncode=2)) as mock_run:
            assert ProxmoxHost().vm_exists(100) is False
        mock_run.assert_called_once_with(["qm", "status", "100"], check=False)

    def test_vm_status(self):
        with patch("pve_installer.hypervisor.run", return_value=_completed([], "status: running\n")):
            assert ProxmoxHost().vm_status(100) == "running"

    def test_import_ovf_with_format(self):
        with patch("pve_installer.hypervisor.run") as mock_run:
            ProxmoxHost().import_ovf(100, Path("/tmp/x/RaspberryMatic.ovf"), "local", "qcow2")
        mock_run.assert_called_once_with(
            ["qm", "importovf", "100", "/tmp/x/RaspberryMatic.ovf", "local", "--format", "qcow2"]
        )

    def test_import_ovf_native_format(self):
        with patch("pve_installer.hypervisor.run") as mock_run:
            ProxmoxHost().import_ovf(100, Path("RaspberryMatic.ovf"), "local-lvm")
        mock_run.assert_called_once_with(["qm", "importovf", "100", "RaspberryMatic.ovf", "local-lvm"])

    def test_set_resize_stop_destroy(self):
        host = ProxmoxHost()
        with patch("pve_installer.hypervisor.run") as mock_run:
            host.set_options(100, "--boot", "order=scsi0")
            host.resize_disk(100, "scsi0", "64G")
            host.stop_vm(100)
            host.destroy_vm(100)
        assert [c.args[0] for c in mock_run.call_args_list] == [
            ["qm", "set", "100", "--boot", "order=scsi0"],
            ["qm", "resize", "100", "scsi0", "64G"],
            ["qm", "stop", "100"],
            ["qm", "destroy", "100"],
        ]
