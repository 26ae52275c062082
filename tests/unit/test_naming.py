"""Unit tests for deployment identity and naming."""

import pytest

from mvp_deploy.core.naming import (
    DeploymentIdFactory,
    make_deployment_id,
    make_service_name,
    slugify,
)


class TestSlugify:
    """Tests for slugify."""

    def test_spaces_become_dashes(self):
        assert slugify("Acme Launcher") == "acme-launcher"

    def test_email_is_sanitized(self):
        assert slugify("jane@x.com") == "jane-at-x-com"

    def test_every_dot_is_replaced(self):
        assert slugify("first.last@mail.example.org") == "first-last-at-mail-example-org"

    def test_runs_of_separators_collapse(self):
        assert slugify("  My   Cool__App!! ") == "my-cool-app"

    def test_only_invalid_characters(self):
        assert slugify("!!!") == ""


class TestServiceName:
    """Tests for make_service_name."""

    def test_example_service_name(self):
        assert make_service_name("Acme Launcher", "jane@x.com") == "acme-launcher-jane-at-x-com"

    def test_deterministic(self):
        first = make_service_name("Acme Launcher", "jane@x.com")
        second = make_service_name("Acme Launcher", "jane@x.com")
        assert first == second

    @pytest.mark.parametrize("owner", [None, "", "   "])
    def test_missing_owner_uses_sentinel(self, owner):
        assert make_service_name("Acme", owner) == "acme-user"

    def test_truncated_to_max_length(self):
        display_name = "A Very Long Product Name " * 4
        owner = "someone.with.a.long.address@example.com"

        full = make_service_name(display_name, owner, max_length=10_000)
        name = make_service_name(display_name, owner)

        assert len(full) > 63
        assert len(name) == 63
        assert full.startswith(name)

    def test_custom_max_length(self):
        name = make_service_name("Acme Launcher", "jane@x.com", max_length=12)
        assert name == "acme-launche"

    def test_short_name_untouched(self):
        assert make_service_name("App", "bob", max_length=63) == "app-bob"

    def test_invalid_max_length(self):
        with pytest.raises(ValueError):
            make_service_name("App", "bob", max_length=0)


class TestDeploymentId:
    """Tests for deployment id derivation."""

    def test_format(self):
        assert make_deployment_id("mvp-42", now_ms=1000) == "artifact-mvp-42-1000"

    def test_without_prefix(self):
        assert make_deployment_id("mvp-42", now_ms=1000, prefix="") == "mvp-42-1000"

    def test_uses_current_time(self):
        deployment_id = make_deployment_id("mvp-42")
        timestamp = deployment_id.rsplit("-", 1)[1]
        assert deployment_id.startswith("artifact-mvp-42-")
        assert timestamp.isdigit()

    def test_factory_ids_never_repeat(self):
        factory = DeploymentIdFactory()
        ids = [factory.next_id("mvp-42") for _ in range(50)]
        assert len(set(ids)) == 50

    def test_factory_timestamps_increase(self):
        factory = DeploymentIdFactory(prefix="mvp")
        first = int(factory.next_id("7").rsplit("-", 1)[1])
        second = int(factory.next_id("7").rsplit("-", 1)[1])
        assert second > first
