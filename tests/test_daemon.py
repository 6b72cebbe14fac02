import pytest

from buildx_plugin.builder.daemon import DaemonManager
from buildx_plugin.common.dto.build import DaemonConfig


class TestDaemonManager:
    def test_command_adds_seccomp_profile_when_present(self, fake_runner, tmp_path):
        profile = tmp_path / "default.json"
        profile.write_text("{}")
        manager = DaemonManager(fake_runner, seccomp_profile_path=str(profile))

        args = manager.command(DaemonConfig())

        assert f"--seccomp-profile={profile}" in args

    def test_command_skips_missing_seccomp_profile(self, fake_runner, tmp_path):
        manager = DaemonManager(fake_runner, seccomp_profile_path=str(tmp_path / "missing.json"))

        args = manager.command(DaemonConfig())

        assert not any(arg.startswith("--seccomp-profile") for arg in args)

    @pytest.mark.asyncio
    async def test_disabled_daemon_not_started(self, fake_runner):
        manager = DaemonManager(fake_runner)

        assert await manager.start(DaemonConfig(disabled=True)) is None
        assert fake_runner.background == []

    @pytest.mark.asyncio
    async def test_start_spawns_dockerd(self, fake_runner):
        manager = DaemonManager(fake_runner)

        process = await manager.start(DaemonConfig(mirror="https://mirror.gcr.io"))

        assert process.pid == 4242
        assert manager.process is process
        assert "--registry-mirror" in fake_runner.background[0]

    @pytest.mark.asyncio
    async def test_ready_after_retries(self, fake_runner):
        fake_runner.on("info", exit_code=1, times=3)
        manager = DaemonManager(fake_runner)

        assert await manager.wait_until_ready(attempts=5, interval_seconds=0.0)
        assert len(fake_runner.commands("info")) == 4

    @pytest.mark.asyncio
    async def test_gives_up_without_raising(self, fake_runner):
        fake_runner.on("info", exit_code=1)
        manager = DaemonManager(fake_runner)

        assert await manager.wait_until_ready(attempts=3, interval_seconds=0.0) is False
        assert len(fake_runner.commands("info")) == 3

    @pytest.mark.asyncio
    async def test_missing_docker_binary_counts_as_not_ready(self, fake_runner):
        fake_runner.on("info", raises=FileNotFoundError("docker"))
        manager = DaemonManager(fake_runner)

        assert await manager.wait_until_ready(attempts=2, interval_seconds=0.0) is False
