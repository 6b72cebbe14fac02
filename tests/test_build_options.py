import pytest
from pydantic import SecretStr

from buildx_plugin.builder.build_options import (
    env_secret_arg,
    file_secret_arg,
    has_build_arg,
    placeholder_credentials,
    sanitize_cache_descriptor,
    sanitize_cache_entries,
    with_environment_build_args,
)


AWS = "harness_placeholder_aws_creds"
GCP = "harness_placeholder_gcp_creds"


class TestPlaceholderSanitization:
    def test_replaces_placeholders_with_live_values(self, build_config):
        build = build_config.evolve(
            cache_from=[f"type=s3,region=us-east-1,access_key_id={AWS},secret_access_key={AWS}"],
            cache_to=[f"type=gcs,bucket=cache,gcp_json_key={GCP}"],
            s3_access_key=SecretStr("AKIAEXAMPLE"),
            s3_secret_key=SecretStr("s3cr3t"),
            gcp_json_key=SecretStr('{"type":"service_account","project_id":"p"}'),
        )

        sanitized = sanitize_cache_entries(build)

        assert sanitized.cache_from == [
            "type=s3,region=us-east-1,access_key_id=AKIAEXAMPLE,secret_access_key=s3cr3t"
        ]
        assert sanitized.cache_to == [
            'type=gcs,bucket=cache,gcp_json_key={"type":"service_account","project_id":"p"}'
        ]
        assert AWS not in "".join(sanitized.cache_from)
        assert GCP not in "".join(sanitized.cache_to)

    @pytest.mark.parametrize(
        "descriptor, expected",
        [
            (f"gcp_json_key={GCP},type=gcs,bucket=b", "type=gcs,bucket=b"),
            (f"type=gcs,gcp_json_key={GCP},bucket=b", "type=gcs,bucket=b"),
            (f"type=gcs,bucket=b,gcp_json_key={GCP}", "type=gcs,bucket=b"),
            (f"type=s3,access_key_id={AWS},secret_access_key={AWS}", "type=s3"),
        ],
    )
    def test_missing_live_value_removes_pair(self, build_config, descriptor, expected):
        credentials = placeholder_credentials(build_config)

        result = sanitize_cache_descriptor(descriptor, credentials)

        assert result == expected
        assert ",," not in result
        assert not result.startswith(",")
        assert not result.endswith(",")

    def test_placeholder_only_descriptor_dropped(self, build_config):
        build = build_config.evolve(
            cache_from=[f"gcp_json_key={GCP}", "type=registry,ref=a/b"],
            cache_to=[f"access_key_id={AWS},secret_access_key={AWS}"],
        )

        sanitized = sanitize_cache_entries(build)

        assert sanitized.cache_from == ["type=registry,ref=a/b"]
        assert sanitized.cache_to == []

    def test_sanitizing_twice_is_stable(self, build_config):
        build = build_config.evolve(
            cache_to=[f"type=s3,bucket=b,access_key_id={AWS}"],
            s3_access_key=SecretStr("AKIAEXAMPLE"),
            s3_path_style=True,
        )

        once = sanitize_cache_entries(build)

        assert sanitize_cache_entries(once).cache_to == once.cache_to == [
            "type=s3,bucket=b,access_key_id=AKIAEXAMPLE,use_path_style=true"
        ]

    def test_unrelated_descriptor_untouched(self, build_config):
        credentials = placeholder_credentials(build_config)

        assert sanitize_cache_descriptor("type=registry,ref=a/b", credentials) == "type=registry,ref=a/b"

    def test_path_style_appended_for_s3(self, build_config):
        credentials = placeholder_credentials(build_config)

        assert sanitize_cache_descriptor("type=s3,bucket=b", credentials, path_style=True) == (
            "type=s3,bucket=b,use_path_style=true"
        )
        assert sanitize_cache_descriptor(
            "type=s3,bucket=b,use_path_style=false", credentials, path_style=True
        ) == "type=s3,bucket=b,use_path_style=false"
        assert sanitize_cache_descriptor(
            "type=registry,ref=a/b", credentials, path_style=True
        ) == "type=registry,ref=a/b"


class TestEnvironmentBuildArgs:
    def test_appends_proxy_values_to_both_lists(self, build_config):
        environment = {"http_proxy": "http://proxy:3128", "NO_PROXY": "localhost"}

        build = with_environment_build_args(build_config, environment)

        expected = [
            "http_proxy=http://proxy:3128",
            "HTTP_PROXY=http://proxy:3128",
            "no_proxy=localhost",
            "NO_PROXY=localhost",
        ]
        assert build.args == expected
        assert build.args_new == expected

    def test_existing_key_is_not_overridden(self, build_config):
        build = build_config.evolve(args=["HTTP_PROXY=http://custom"], args_new=[])

        build = with_environment_build_args(build, {"http_proxy": "http://proxy:3128"})

        assert build.args == ["HTTP_PROXY=http://custom"]
        assert build.args_new == ["http_proxy=http://proxy:3128", "HTTP_PROXY=http://proxy:3128"]

    def test_key_prefix_alone_does_not_block(self, build_config):
        build = build_config.evolve(args=["http_proxy_extra=1"])

        build = with_environment_build_args(build, {"http_proxy": "http://proxy"})

        assert "http_proxy=http://proxy" in build.args

    def test_args_from_env(self, build_config):
        build = build_config.evolve(args_env=["GIT_SHA"])

        build = with_environment_build_args(build, {"GIT_SHA": "abc123"})

        assert build.args == ["GIT_SHA=abc123"]

    def test_no_environment_no_change(self, build_config):
        build = with_environment_build_args(build_config, {})

        assert build.args == []
        assert build.args_new == []

    def test_has_build_arg_is_case_insensitive(self):
        assert has_build_arg(["Https_Proxy=x"], "https_proxy")
        assert not has_build_arg(["https_proxy_mirror=x"], "https_proxy")


class TestSecretArgs:
    def test_env_and_file_forms(self):
        assert env_secret_arg("token=GITHUB_TOKEN") == "id=token,env=GITHUB_TOKEN"
        assert file_secret_arg("cfg=/run/cfg") == "id=cfg,src=/run/cfg"

    def test_value_may_contain_equals(self):
        assert file_secret_arg("cfg=/run/a=b") == "id=cfg,src=/run/a=b"

    @pytest.mark.parametrize("spec", ["foo_secret=", "=value", "novalue", ""])
    def test_malformed_specs_are_skipped(self, spec):
        assert env_secret_arg(spec) is None
        assert file_secret_arg(spec) is None
