import json
import shlex

import pytest

from pusnip.core.config import Config
from pusnip.core.errors import CommandError, InterfaceNotFoundError
from pusnip.services.pusnip_service import PusnipService

LIVE_RULESET = """table ip nat {
	chain postrouting {
		type nat hook postrouting priority srcnat; policy accept;
	}
}"""


class FakeExecutor:
    """Records nft invocations instead of running them."""

    def __init__(self, ruleset=LIVE_RULESET, fail_on=None):
        self.ruleset = ruleset
        self.fail_on = fail_on
        self.commands = []

    async def run(self, command):
        self.commands.append(list(command))
        line = shlex.join(command)
        if self.fail_on and self.fail_on in line:
            raise CommandError(line, 1, "", "Error: Could not process rule: No such file or directory")
        if list(command[-2:]) == ["list", "ruleset"]:
            return self.ruleset
        return ""

    def nft_args(self):
        return [c[2:] for c in self.commands]


class FakeResolver:
    def __init__(self, bindings):
        self.bindings = bindings

    def find_interface_for(self, source_ip):
        if source_ip not in self.bindings:
            raise InterfaceNotFoundError(f"No Network interface found for sourceip '{source_ip}'")
        return self.bindings[source_ip]


@pytest.fixture
def mapping():
    return {
        "srvA": "203.0.113.5",
        "srvB": "203.0.113.5",
        "srvC": "198.51.100.7",
        "srvD": "192.0.2.99",
    }


@pytest.fixture
def config(tmp_path, mapping):
    mapping_file = tmp_path / "mapping.json"
    mapping_file.write_text(json.dumps(mapping))
    return Config(
        nftables_conf=str(tmp_path / "nftables.conf"),
        state_file=str(tmp_path / "state.json"),
        mapping_file=str(mapping_file),
        lock_dir=str(tmp_path),
    )


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def resolver():
    return FakeResolver({"203.0.113.5": "eth0", "198.51.100.7": "eth1"})


@pytest.fixture
def service(config, executor, resolver):
    return PusnipService.from_config(config, executor=executor, resolver=resolver)


@pytest.fixture
def read_state(config):
    def _read():
        with open(config.state_file) as fh:
            return json.load(fh)
    return _read
