from hostnet.adapters.base import CmdResult
from hostnet.core.model import CheckStatus, Severity, ValidationContext
from hostnet.validators import bonds, bridges, connectivity, health, mtu, vlans
from hostnet.validators.engine import VALIDATE_PHASES, run_validators

BOND_OK = """\
Bonding Mode: IEEE 802.3ad Dynamic link aggregation
MII Status: up

Slave Interface: eth2
MII Status: up

Slave Interface: eth3
MII Status: up
"""


class ScriptedHost:
    def __init__(self, commands: dict[str, CmdResult] | None = None, files: dict[str, str] | None = None) -> None:
        self.commands = commands or {}
        self.files = files or {}

    def run(self, argv, timeout=None) -> CmdResult:
        return self.commands.get(" ".join(argv), CmdResult(1, "", "not scripted"))

    def read_text(self, path: str):
        return self.files.get(path)


def _link(iface: str, state: str = "UP", mtu: int = 1500) -> CmdResult:
    return CmdResult(0, f"7: {iface}: <BROADCAST,MULTICAST,UP> mtu {mtu} qdisc noqueue state {state} mode DEFAULT", "")


def _by_name(results):
    return {r.name: r for r in results}


def test_bond_degraded_and_missing(topology) -> None:
    files = {
        "/proc/net/bonding/bond1": BOND_OK.replace("Slave Interface: eth3\nMII Status: up", "Slave Interface: eth3\nMII Status: down"),
    }
    results = _by_name(bonds.validate(ValidationContext(ScriptedHost(files=files), topology)))
    assert results["bond0 exists"].status == CheckStatus.FAIL
    assert results["bond1 degraded"].status == CheckStatus.WARN
    assert results["bond1 redundancy"].status == CheckStatus.PASS


def test_bond_single_slave_warns(topology) -> None:
    single = "Bonding Mode: IEEE 802.3ad\nSlave Interface: eth2\nMII Status: up\n"
    files = {"/proc/net/bonding/bond0": single, "/proc/net/bonding/bond1": BOND_OK}
    results = _by_name(bonds.validate(ValidationContext(ScriptedHost(files=files), topology)))
    assert results["bond0 status"].status == CheckStatus.PASS
    assert results["bond0 redundancy"].status == CheckStatus.WARN


def test_bridge_down_and_missing_ip_are_critical(topology) -> None:
    host = ScriptedHost(
        {
            "ip -o link show dev cloudbr0": _link("cloudbr0", mtu=9000),
            "ip -o link show dev cloudbr1": _link("cloudbr1", state="DOWN"),
            "ip -4 -o addr show dev cloudbr0": CmdResult(0, "7: cloudbr0    inet 10.1.40.11/24 brd 10.1.40.255 scope global", ""),
            "ip -4 -o addr show dev cloudbr1": CmdResult(0, "", ""),
        }
    )
    results = _by_name(bridges.validate(ValidationContext(host, topology)))
    assert results["cloudbr0 status"].status == CheckStatus.PASS
    assert results["cloudbr1 status"].severity == Severity.CRIT
    assert results["cloudbr0 IP"].message == "10.1.40.11/24"
    assert results["cloudbr1 IP"].status == CheckStatus.FAIL
    assert results["cloudbr1 IP"].severity == Severity.CRIT


def test_optional_public_bridge_without_topology() -> None:
    host = ScriptedHost({"ip -o link show dev cloudbr0": _link("cloudbr0", mtu=9000)})
    results = _by_name(bridges.validate(ValidationContext(host)))
    assert results["cloudbr100 not found"].status == CheckStatus.WARN
    assert results["cloudbr1 exists"].status == CheckStatus.FAIL


def test_mtu_mismatch_warns(topology) -> None:
    host = ScriptedHost(
        {
            "ip -o link show dev bond0": _link("bond0", mtu=1500),
            "ip -o link show dev cloudbr1": _link("cloudbr1", mtu=1500),
        }
    )
    results = _by_name(mtu.validate(ValidationContext(host, topology)))
    assert results["bond0 MTU"].status == CheckStatus.WARN
    assert results["cloudbr1 MTU"].status == CheckStatus.PASS
    assert "cloudbr0 MTU" not in results


def test_vlan_checks_follow_mode(topology) -> None:
    host = ScriptedHost({"ip -o link show dev bond1.41": _link("bond1.41")})
    results = vlans.validate(ValidationContext(host, topology))
    assert [r.status for r in results] == [CheckStatus.SKIP, CheckStatus.PASS]
    assert results[1].name == "Management VLAN (bond1.41)"


def test_gateway_unreachable_is_critical_dns_warns() -> None:
    host = ScriptedHost({"ip route show default": CmdResult(0, "default via 10.1.41.1 dev cloudbr1", "")})
    results = _by_name(connectivity.validate(ValidationContext(host)))
    assert results["Gateway reachable"].severity == Severity.CRIT
    assert results["DNS unreachable"].status == CheckStatus.WARN


def test_resource_thresholds(monkeypatch) -> None:
    monkeypatch.setattr(health, "disk_usage_percent", lambda path="/": 92)
    monkeypatch.setattr(health, "load_average", lambda host: {"load": 3.0, "cores": 2})
    files = {"/proc/meminfo": "MemTotal: 1000 kB\nMemFree: 50 kB\nMemAvailable: 100 kB\n"}
    results = _by_name(health.validate_resources(ValidationContext(ScriptedHost(files=files))))
    assert results["Disk usage"].severity == Severity.CRIT
    assert results["Memory usage"].status == CheckStatus.WARN
    assert results["Memory usage"].message == "90%"
    assert results["Load average"].status == CheckStatus.WARN


def test_services() -> None:
    host = ScriptedHost({"systemctl is-active --quiet NetworkManager": CmdResult(0, "", "")})
    results = _by_name(health.validate_services(ValidationContext(host)))
    assert results["NetworkManager"].status == CheckStatus.PASS
    assert results["libvirtd"].status == CheckStatus.WARN


def test_crashing_validator_is_recorded(topology) -> None:
    def boom(ctx):
        raise RuntimeError("collector exploded")

    summary = run_validators(ValidationContext(ScriptedHost(), topology), {"bonds": [boom]})
    assert summary.results[0].status == CheckStatus.FAIL
    assert "collector exploded" in summary.results[0].message
    assert summary.exit_code == 1


def test_full_validation_exit_code(topology) -> None:
    summary = run_validators(ValidationContext(ScriptedHost(), topology), VALIDATE_PHASES)
    assert summary.exit_code == 2
