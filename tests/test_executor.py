import sys

import pytest

from pusnip.core.errors import CommandError
from pusnip.system.executor import CommandExecutor


async def test_returns_trimmed_stdout():
    out = await CommandExecutor().run([sys.executable, "-c", "print('  table ip nat {}  ')"])
    assert out == "table ip nat {}"


async def test_non_zero_exit_carries_details():
    script = "import sys; print(' partial '); print(' denied ', file=sys.stderr); sys.exit(3)"
    with pytest.raises(CommandError) as exc:
        await CommandExecutor().run([sys.executable, "-c", script])

    err = exc.value
    assert err.code == 3
    assert err.stdout == "partial"
    assert err.stderr == "denied"
    assert sys.executable in err.command
    assert "Exit Code: 3" in str(err)


async def test_spawn_failure_is_a_command_error():
    with pytest.raises(CommandError) as exc:
        await CommandExecutor().run(["/nonexistent/pusnip-nft", "list", "ruleset"])
    assert exc.value.code is None
    assert exc.value.command == "/nonexistent/pusnip-nft list ruleset"
