import asyncio
import os

import pytest

from pusnip.core.errors import AddressError, ConfigError, InterfaceNotFoundError, NotFoundError


async def test_register_records_resolved_entry(service, read_state):
    assert await service.push_new_ip("10.0.0.6", "srvA") is True
    assert read_state() == {"srvA": {"ip": "10.0.0.6", "sourceip": "203.0.113.5", "dev": "eth0"}}


async def test_reregistration_overwrites_in_place(service, read_state):
    await service.push_new_ip("10.0.0.6", "srvA")
    await service.push_new_ip("10.0.0.9", "srvC")
    await service.push_new_ip("10.0.0.7", "srvA")

    state = read_state()
    assert list(state) == ["srvA", "srvC"]
    assert state["srvA"]["ip"] == "10.0.0.7"


async def test_unmapped_name_fails_and_leaves_state(service, config, read_state):
    await service.push_new_ip("10.0.0.6", "srvA")

    with pytest.raises(NotFoundError):
        await service.register("10.0.0.8", "unknown")
    result = await service.push_new_ip("10.0.0.8", "unknown")

    assert result == f"Server 'unknown' not found in {config.mapping_file}"
    assert read_state() == {"srvA": {"ip": "10.0.0.6", "sourceip": "203.0.113.5", "dev": "eth0"}}


async def test_unbound_source_ip(service, config):
    with pytest.raises(InterfaceNotFoundError):
        await service.register("10.0.0.6", "srvD")
    assert "192.0.2.99" in await service.push_new_ip("10.0.0.6", "srvD")
    assert not os.path.exists(config.state_file)


async def test_invalid_client_address(service, config):
    with pytest.raises(AddressError):
        await service.register("10.0.0.6; nft flush ruleset", "srvA")
    assert not os.path.exists(config.state_file)


async def test_missing_mapping_file(service, config):
    os.remove(config.mapping_file)
    with pytest.raises(ConfigError):
        await service.register("10.0.0.6", "srvA")


@pytest.mark.parametrize("content", ["{broken", '["srvA"]'])
async def test_unparseable_mapping_file(service, config, content):
    with open(config.mapping_file, "w") as fh:
        fh.write(content)
    result = await service.push_new_ip("10.0.0.6", "srvA")
    assert result.startswith("Error while parsing mapping configuration")


async def test_concurrent_registrations_keep_both(service, read_state):
    results = await asyncio.gather(
        service.push_new_ip("10.0.0.6", "srvA"),
        service.push_new_ip("10.0.0.7", "srvC"),
    )
    assert results == [True, True]
    assert set(read_state()) == {"srvA", "srvC"}


async def test_refresh_applies_registered_clients(service, executor):
    await service.push_new_ip("10.0.0.6", "srvA")
    await service.push_new_ip("10.0.0.7", "srvB")

    assert await service.refresh() is True
    rules = [c for c in executor.nft_args() if c[:2] == ["add", "rule"]]
    assert rules == [
        ["add", "rule", "nat", "postrouting", "ip", "saddr", "{ 10.0.0.6, 10.0.0.7 }",
         "oif", "eth0", "snat", "203.0.113.5"],
    ]


def test_stale_locks_are_logged(service, config, caplog):
    with open(os.path.join(config.lock_dir, "state.lock"), "w") as fh:
        fh.write("1\n")
    service.check_stale_locks()
    assert "state.lock" in caplog.text


def test_unrelated_lock_files_are_not_reported(service, config, caplog):
    with open(os.path.join(config.lock_dir, "poetry.lock"), "w") as fh:
        fh.write("")
    service.check_stale_locks()
    assert "poetry.lock" not in caplog.text


def test_service_uses_its_own_lock_manager(service, config):
    assert service.locks.lock_dir == config.lock_dir
    assert service.locks is service.store.locks
