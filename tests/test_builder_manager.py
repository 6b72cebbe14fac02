import json

import pytest

from buildx_plugin.builder.builder_manager import BuilderManager, pin_image_version, resolve_driver
from buildx_plugin.common.dto.build import BuilderConfig
from buildx_plugin.common.exceptions.base_exceptions import ErrorCode
from buildx_plugin.common.exceptions.build_exceptions import BuilderProvisioningException


def _driver_opts(args):
    return [args[i + 1] for i, arg in enumerate(args[:-1]) if arg == "--driver-opt"]


@pytest.fixture
def container_builder(tmp_path):
    return BuilderConfig(
        driver="docker-container",
        driver_opts=["image=moby/buildkit:v0.11.0"],
        driver_opts_new=["image=moby/buildkit:v0.13.0,network=host"],
        assets_dir=str(tmp_path / "assets"),
    )


class TestResolveDriver:
    def test_cache_export_forces_container_driver(self):
        assert resolve_driver(BuilderConfig(), exports_cache=True).driver == "docker-container"
        assert resolve_driver(BuilderConfig(driver="docker"), exports_cache=True).driver == "docker-container"

    def test_explicit_driver_kept(self):
        assert resolve_driver(BuilderConfig(driver="remote"), exports_cache=True).driver == "remote"
        assert resolve_driver(BuilderConfig(), exports_cache=False).driver == ""

    def test_pin_image_version(self):
        assert pin_image_version(["image=a:1", "network=host"], "b:2") == ["image=b:2", "network=host"]


class TestBuilderManager:
    @pytest.mark.asyncio
    async def test_default_driver_provisions_nothing(self, fake_runner):
        manager = BuilderManager(fake_runner)

        async with manager.provision(BuilderConfig()) as name:
            assert name is None

        assert fake_runner.calls == []

    @pytest.mark.asyncio
    async def test_primary_success_and_teardown(self, fake_runner, container_builder):
        fake_runner.on("buildx", "create", output="builder-primary\n")
        manager = BuilderManager(fake_runner)

        async with manager.provision(container_builder) as name:
            assert name == "builder-primary"
            assert manager.assigned_names == ["builder-primary"]

        creates = fake_runner.commands("buildx", "create")
        assert len(creates) == 1
        assert _driver_opts(creates[0]) == ["image=moby/buildkit:v0.13.0,network=host"]
        assert fake_runner.commands("buildx", "inspect")[0][-1] == "builder-primary"
        assert fake_runner.commands("buildx", "rm") == [
            ["/usr/local/bin/docker", "buildx", "rm", "builder-primary"]
        ]
        assert manager.assigned_names == []

    @pytest.mark.asyncio
    async def test_primary_inspect_failure_falls_back(self, fake_runner, container_builder):
        fake_runner.on("buildx", "create", output="builder-primary\n", times=1)
        fake_runner.on("buildx", "create", output="builder-fallback\n")
        fake_runner.on("buildx", "inspect", exit_code=1, error_output="unknown driver opt", times=1)
        manager = BuilderManager(fake_runner)

        async with manager.provision(container_builder) as name:
            assert name == "builder-fallback"

        creates = fake_runner.commands("buildx", "create")
        assert len(creates) == 2
        assert _driver_opts(creates[1]) == ["image=moby/buildkit:v0.11.0"]
        removed = [args[-1] for args in fake_runner.commands("buildx", "rm")]
        assert removed == ["builder-primary", "builder-fallback"]

    @pytest.mark.asyncio
    async def test_primary_create_failure_falls_back(self, fake_runner, container_builder):
        fake_runner.on("buildx", "create", exit_code=1, error_output="unknown flag", times=1)
        fake_runner.on("buildx", "create", output="builder-fallback\n")
        manager = BuilderManager(fake_runner)

        async with manager.provision(container_builder) as name:
            assert name == "builder-fallback"

        assert [args[-1] for args in fake_runner.commands("buildx", "rm")] == ["builder-fallback"]

    @pytest.mark.asyncio
    async def test_primary_spawn_error_falls_back(self, fake_runner, container_builder):
        fake_runner.on("buildx", "create", raises=OSError(7, "Argument list too long"), times=1)
        fake_runner.on("buildx", "create", output="builder-fallback\n")
        manager = BuilderManager(fake_runner)

        async with manager.provision(container_builder) as name:
            assert name == "builder-fallback"

        creates = fake_runner.commands("buildx", "create")
        assert len(creates) == 2
        assert _driver_opts(creates[1]) == ["image=moby/buildkit:v0.11.0"]
        assert [args[-1] for args in fake_runner.commands("buildx", "rm")] == ["builder-fallback"]

    @pytest.mark.asyncio
    async def test_no_new_options_goes_straight_to_legacy(self, fake_runner, container_builder):
        fake_runner.on("buildx", "create", output="legacy\n")
        manager = BuilderManager(fake_runner)

        async with manager.provision(container_builder.evolve(driver_opts_new=[])) as name:
            assert name == "legacy"

        creates = fake_runner.commands("buildx", "create")
        assert len(creates) == 1
        assert _driver_opts(creates[0]) == ["image=moby/buildkit:v0.11.0"]

    @pytest.mark.asyncio
    async def test_fallback_inspect_failure_is_fatal(self, fake_runner, container_builder):
        fake_runner.on("buildx", "create", output="builder-x\n")
        fake_runner.on("buildx", "inspect", exit_code=1, error_output="bootstrap failed")
        manager = BuilderManager(fake_runner)
        body_ran = False

        with pytest.raises(BuilderProvisioningException) as exc_info:
            async with manager.provision(container_builder):
                body_ran = True

        assert not body_ran
        assert exc_info.value.error_code == ErrorCode.BUILDER_BOOTSTRAP_FAILED
        assert exc_info.value.primary_error
        assert len(fake_runner.commands("buildx", "rm")) == 2

    @pytest.mark.asyncio
    async def test_fallback_create_failure_is_fatal(self, fake_runner, container_builder):
        fake_runner.on("buildx", "create", exit_code=1, error_output="driver not found")
        manager = BuilderManager(fake_runner)

        with pytest.raises(BuilderProvisioningException) as exc_info:
            async with manager.provision(container_builder):
                pytest.fail("build body must not run")

        assert exc_info.value.error_code == ErrorCode.BUILDER_CREATE_FAILED
        assert "driver not found" in exc_info.value.message
        assert fake_runner.commands("buildx", "rm") == []

    @pytest.mark.asyncio
    async def test_teardown_runs_when_body_fails(self, fake_runner, container_builder):
        fake_runner.on("buildx", "create", output="builder-primary\n")
        manager = BuilderManager(fake_runner)

        with pytest.raises(ValueError):
            async with manager.provision(container_builder):
                raise ValueError("build exploded")

        assert [args[-1] for args in fake_runner.commands("buildx", "rm")] == ["builder-primary"]

    @pytest.mark.asyncio
    async def test_teardown_failure_is_not_propagated(self, fake_runner, container_builder):
        fake_runner.on("buildx", "create", output="builder-primary\n")
        fake_runner.on("buildx", "rm", exit_code=1, error_output="no such builder")
        manager = BuilderManager(fake_runner)

        async with manager.provision(container_builder) as name:
            assert name == "builder-primary"

        assert len(fake_runner.commands("buildx", "rm")) == 1

    @pytest.mark.asyncio
    async def test_fallback_pins_loaded_buildkit(self, fake_runner, container_builder, tmp_path):
        assets = tmp_path / "assets"
        assets.mkdir()
        (assets / "version.json").write_text(json.dumps({"buildkit_version": "harness/buildkit:1.2.3"}))
        (assets / "buildkit.tar").write_bytes(b"tarball-bytes")
        fake_runner.on("buildx", "create", exit_code=1, times=1)
        fake_runner.on("buildx", "create", output="pinned\n")
        manager = BuilderManager(fake_runner)

        async with manager.provision(container_builder) as name:
            assert name == "pinned"

        loads = fake_runner.commands("image", "load")
        assert len(loads) == 1
        assert fake_runner.stdin[fake_runner.calls.index(loads[0])] == b"tarball-bytes"
        fallback = fake_runner.commands("buildx", "create")[1]
        assert _driver_opts(fallback) == ["image=harness/buildkit:1.2.3"]

    @pytest.mark.asyncio
    async def test_failed_load_uses_configured_version(self, fake_runner, container_builder, tmp_path):
        assets = tmp_path / "assets"
        assets.mkdir()
        (assets / "version.json").write_text(json.dumps({"buildkit_version": "harness/buildkit:1.2.3"}))
        (assets / "buildkit.tar").write_bytes(b"tarball-bytes")
        fake_runner.on("image", "load", exit_code=1)
        fake_runner.on("buildx", "create", output="configured\n")
        manager = BuilderManager(fake_runner)
        builder = container_builder.evolve(driver_opts_new=[], buildkit_version="moby/buildkit:v0.12.5")

        async with manager.provision(builder):
            pass

        assert _driver_opts(fake_runner.commands("buildx", "create")[0]) == ["image=moby/buildkit:v0.12.5"]

    @pytest.mark.asyncio
    async def test_loaded_buildkit_disabled_skips_load(self, fake_runner, container_builder):
        fake_runner.on("buildx", "create", output="plain\n")
        manager = BuilderManager(fake_runner)
        builder = container_builder.evolve(driver_opts_new=[], use_loaded_buildkit=False)

        async with manager.provision(builder):
            pass

        assert fake_runner.commands("image", "load") == []
        assert _driver_opts(fake_runner.commands("buildx", "create")[0]) == ["image=moby/buildkit:v0.11.0"]
