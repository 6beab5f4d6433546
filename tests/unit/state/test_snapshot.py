"""Unit tests for ConfigSnapshot and load_snapshot."""

import pytest

from swapstudio.api.schemas.control_plane import BackendOverride, ConfigurationInfo
from swapstudio.core.errors import RemoteError
from swapstudio.state.snapshot import ConfigSnapshot, load_snapshot


class TestConfigSnapshotFromRemote:
    """Tests for building a snapshot from control plane reads."""

    def test_duplicate_backends_first_wins(self, backend_factory):
        """Backends are unique by id; the first one is kept."""
        info = ConfigurationInfo(available_backends=[
            backend_factory("cuda", display_name="CUDA 12"),
            backend_factory("cuda", display_name="CUDA 11"),
            backend_factory("cpu"),
        ])

        snapshot = ConfigSnapshot.from_remote(info, [])

        assert [b.id for b in snapshot.backends] == ["cuda", "cpu"]
        assert snapshot.find_backend("cuda").display_name == "CUDA 12"

    @pytest.mark.parametrize("backend_id", [None, "", "auto"])
    def test_auto_override_maps_to_none(self, backend_id):
        """No override, an empty id and "auto" all mean auto-detect."""
        info = ConfigurationInfo(current_backend_override=BackendOverride(backend_id=backend_id))
        assert ConfigSnapshot.from_remote(info, []).backend_override is None

    def test_available_backends(self, backend_factory):
        """Only available backends are listed as available."""
        info = ConfigurationInfo(available_backends=[
            backend_factory("cpu"),
            backend_factory("rocm", available=False),
        ])
        snapshot = ConfigSnapshot.from_remote(info, [])
        assert [b.id for b in snapshot.available_backends] == ["cpu"]

    def test_override_of_unavailable_backend_is_stale(self, backend_factory):
        """An override naming an unavailable backend is stale."""
        info = ConfigurationInfo(
            available_backends=[backend_factory("rocm", available=False)],
            current_backend_override=BackendOverride(backend_id="rocm"),
        )
        assert ConfigSnapshot.from_remote(info, []).override_is_stale

    def test_override_of_missing_backend_is_stale(self):
        """An override naming an unknown backend is stale."""
        info = ConfigurationInfo(current_backend_override=BackendOverride(backend_id="vulkan"))
        assert ConfigSnapshot.from_remote(info, []).override_is_stale

    def test_find_model(self, model_factory):
        """Models are looked up by name."""
        snapshot = ConfigSnapshot.from_remote(ConfigurationInfo(), [model_factory("m1")])
        assert snapshot.find_model("m1").name == "m1"
        assert snapshot.find_model("m9") is None


class TestLoadSnapshot:
    """Tests for load_snapshot."""

    @pytest.mark.asyncio
    async def test_merges_both_reads(self, control_plane):
        """Configuration info and model configuration are merged."""
        snapshot = await load_snapshot(control_plane)

        assert [b.id for b in snapshot.backends] == ["cpu", "cuda"]
        assert [m.name for m in snapshot.models] == ["m1", "m2"]
        assert snapshot.raw_config == control_plane.configuration
        assert snapshot.config_path == "/etc/llama-swap/config.json"
        assert snapshot.service_status.running is True
        assert control_plane.call_names() == [
            "get_configuration_info",
            "get_model_configurations",
        ]

    @pytest.mark.asyncio
    async def test_info_failure_propagates(self, control_plane):
        """A failed configuration-info read fails the load."""
        control_plane.failures["get_configuration_info"] = RemoteError("Failed to load configuration")

        with pytest.raises(RemoteError, match="Failed to load configuration"):
            await load_snapshot(control_plane)

    @pytest.mark.asyncio
    async def test_model_failure_yields_empty_models(self, control_plane, unreachable_error):
        """A failed model read still produces a snapshot, without models."""
        control_plane.failures["get_model_configurations"] = unreachable_error

        snapshot = await load_snapshot(control_plane)

        assert snapshot.models == ()
        assert len(snapshot.backends) == 2
