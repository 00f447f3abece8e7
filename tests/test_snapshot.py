"""Tests for saving, loading and restoring the defaults file"""

import logging
import os

import pytest

from nicbench.core.errors import SnapshotFormatError, SnapshotMissing
from nicbench.core.inspector import DeviceInspector
from nicbench.core.snapshot import DeviceSnapshot, SnapshotStore, parse_snapshot, serialize_snapshot

from tests.conftest import DEFAULT_AFFINITY, DEFAULT_RPS, DEFAULT_XPS, IFACE, read_file


@pytest.fixture
def store(state, snapshot_path):
    return SnapshotStore(DeviceInspector(state, IFACE), snapshot_path)


SAMPLE = """# saved 2024-05-01 10:00:00
IFACE=eth0
IRQBALANCE_ENABLED=enabled
COMBINED_QUEUES=32
RX_RING_SIZE=1024
TX_RING_SIZE=2048
IRQ_AFFINITY=
  99:0-63
  100:0-63
RPS_MASKS=
  /sys/class/net/eth0/queues/rx-0/rps_cpus: 00000000,00000000
XPS_MASKS=
  /sys/class/net/eth0/queues/tx-0/xps_cpus: 00000000,00000001
"""


class TestFormat:

    def test_parse_sample(self):
        snapshot = parse_snapshot(SAMPLE)
        assert snapshot.iface == "eth0"
        assert snapshot.irqbalance_enabled
        assert snapshot.combined_queues == 32
        assert (snapshot.rx_ring, snapshot.tx_ring) == (1024, 2048)
        assert snapshot.irq_affinity == {99: "0-63", 100: "0-63"}
        assert snapshot.rps_masks == {
            "/sys/class/net/eth0/queues/rx-0/rps_cpus": "00000000,00000000"}
        assert snapshot.xps_masks == {
            "/sys/class/net/eth0/queues/tx-0/xps_cpus": "00000000,00000001"}

    def test_serialize_then_parse(self):
        snapshot = parse_snapshot(SAMPLE)
        assert parse_snapshot(serialize_snapshot(snapshot)) == snapshot

    def test_serialized_layout(self):
        text = serialize_snapshot(DeviceSnapshot(
            iface="eth0", irqbalance_state="disabled", combined_queues=8,
            rx_ring=4096, tx_ring=4096, irq_affinity={99: "0-7"},
            rps_masks={"/sys/class/net/eth0/queues/rx-0/rps_cpus": "000000ff"},
        ))
        assert text.splitlines() == [
            "IFACE=eth0",
            "IRQBALANCE_ENABLED=disabled",
            "COMBINED_QUEUES=8",
            "RX_RING_SIZE=4096",
            "TX_RING_SIZE=4096",
            "IRQ_AFFINITY=",
            "  99:0-7",
            "RPS_MASKS=",
            "  /sys/class/net/eth0/queues/rx-0/rps_cpus: 000000ff",
            "XPS_MASKS=",
        ]

    def test_empty_values_are_none(self):
        snapshot = parse_snapshot("COMBINED_QUEUES=\nRX_RING_SIZE=\nIRQ_AFFINITY=\n")
        assert snapshot.combined_queues is None
        assert snapshot.rx_ring is None
        assert snapshot.irq_affinity == {}
        assert not snapshot.irqbalance_enabled

    @pytest.mark.parametrize("text", [
        "  99:0-63\n",
        "IRQ_AFFINITY=\n  eth0:0-63\n",
        "RPS_MASKS=\n  no-separator\n",
        "just some words\n",
        "COMBINED_QUEUES=many\n",
    ])
    def test_malformed(self, text):
        with pytest.raises(SnapshotFormatError):
            parse_snapshot(text, source="defaults")

    def test_bad_scalar_reports_its_line(self):
        with pytest.raises(SnapshotFormatError) as excinfo:
            parse_snapshot("IFACE=eth0\nCOMBINED_QUEUES=many\n", source="defaults")
        assert excinfo.value.line_no == 2
        assert "defaults:2" in str(excinfo.value)

    def test_unknown_key_is_ignored(self, caplog):
        with caplog.at_level(logging.WARNING):
            snapshot = parse_snapshot("GOVERNOR=powersave\nCOMBINED_QUEUES=4\n")
        assert snapshot.combined_queues == 4
        assert "GOVERNOR" in caplog.text


class TestStore:

    def test_capture(self, store):
        snapshot = store.capture()
        assert snapshot.iface == IFACE
        assert snapshot.irqbalance_state == "enabled"
        assert snapshot.combined_queues == 32
        assert (snapshot.rx_ring, snapshot.tx_ring) == (1024, 2048)
        assert snapshot.irq_affinity == {99: DEFAULT_AFFINITY, 100: DEFAULT_AFFINITY}
        assert set(snapshot.rps_masks.values()) == {DEFAULT_RPS}
        assert set(snapshot.xps_masks.values()) == {DEFAULT_XPS}
        assert len(snapshot.rps_masks) == 2

    def test_save_then_load(self, store, snapshot_path):
        saved = store.save()
        assert store.load() == saved
        with open(snapshot_path) as f:
            assert f.readline().startswith("# saved ")
        assert not os.path.exists(f"{snapshot_path}.tmp")

    def test_save_overwrites_previous_snapshot(self, store, snapshot_path):
        store.save()
        store.state.write_text("/proc/irq/99/smp_affinity_list", "0-7")
        store.save()
        assert store.load().irq_affinity[99] == "0-7"

    def test_load_without_snapshot(self, store, snapshot_path):
        with pytest.raises(SnapshotMissing) as excinfo:
            store.load()
        assert str(excinfo.value) == f"No defaults file found at {snapshot_path}. Cannot revert."

    def test_failed_write_leaves_no_temp_file(self, store, snapshot_path):
        os.makedirs(snapshot_path)
        with pytest.raises(OSError):
            store.save()
        assert not os.path.exists(f"{snapshot_path}.tmp")

    def test_dry_run_save_writes_nothing(self, store, snapshot_path):
        store.state.dry_run = True
        store.save()
        assert not os.path.exists(snapshot_path)


class TestApply:

    def test_restores_every_entry(self, store, nic_root, fake_runner):
        snapshot = parse_snapshot(SAMPLE)
        report = store.apply(snapshot)

        assert report.ok
        assert read_file(nic_root, "/proc/irq/99/smp_affinity_list") == "0-63\n"
        assert read_file(nic_root, "/sys/class/net/eth0/queues/tx-0/xps_cpus") == "00000000,00000001\n"
        assert fake_runner.mutating_calls == [
            ["systemctl", "enable", "irqbalance.service"],
            ["systemctl", "start", "irqbalance.service"],
            ["ethtool", "-L", "eth0", "combined", "32"],
            ["ethtool", "-G", "eth0", "rx", "1024", "tx", "2048"],
        ]

    def test_explicit_ring_sizes(self, store, fake_runner):
        store.apply(parse_snapshot(SAMPLE), rx_size=1024, tx_size=1024)
        assert ["ethtool", "-G", "eth0", "rx", "1024", "tx", "1024"] in fake_runner.calls

    def test_missing_entry_does_not_stop_restore(self, store, nic_root):
        snapshot = parse_snapshot(SAMPLE.replace("  100:0-63", "  100:0-63\n  555:0-63"))
        report = store.apply(snapshot)

        assert [r.name for r in report.failures] == ["/proc/irq/555/smp_affinity_list"]
        assert read_file(nic_root, "/proc/irq/100/smp_affinity_list") == "0-63\n"
        assert read_file(nic_root, "/sys/class/net/eth0/queues/rx-0/rps_cpus") == "00000000,00000000\n"

    def test_failed_command_is_recorded(self, store, fake_runner):
        fake_runner.fail(["ethtool", "-L", "eth0", "combined", "32"])
        report = store.apply(parse_snapshot(SAMPLE))
        assert [r.name for r in report.failures] == ["combined_queues"]

    def test_irqbalance_left_disabled(self, store, fake_runner):
        store.apply(parse_snapshot(SAMPLE.replace("=enabled", "=disabled")))
        assert ["systemctl", "disable", "irqbalance.service"] in fake_runner.calls
