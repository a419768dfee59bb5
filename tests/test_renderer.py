"""
Tests for rendering passthrough plans into container configuration text.
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from common.exceptions import InvalidConfigError, TemplateNotFoundError
from lxc_cuda.devices import HostGpu
from lxc_cuda.planner import GpuSelection, PassthroughPlanner
from lxc_cuda.renderer import DirectiveStyle, PlanRenderer, mount_target


@pytest.fixture
def plan(exists_from):
    """GPU 0 plus control and uvm nodes and one capability device."""
    planner = PassthroughPlanner(exists=exists_from([
        "/dev/nvidia0", "/dev/nvidiactl", "/dev/nvidia-uvm",
        "/dev/nvidia-caps", "/dev/nvidia-caps/nvidia-cap1",
    ]))
    return planner.plan(
        [HostGpu(0, "RTX4090")], GpuSelection.all(),
        capability_entries=["/dev/nvidia-caps/nvidia-cap1"],
    )


@pytest.fixture
def renderer():
    return PlanRenderer()


class TestDevStyle:
    """Slot-numbered devN: directives."""

    @pytest.mark.unit
    def test_render_block(self, renderer, plan):
        text = renderer.render(plan, DirectiveStyle.DEV)

        assert text == (
            "\n"
            "# NVIDIA GPU Passthrough Configuration\n"
            "lxc.cgroup2.devices.allow: c 195:* rwm\n"
            "lxc.cgroup2.devices.allow: c 509:* rwm\n"
            "dev0: /dev/nvidia0\n"
            "dev1: /dev/nvidiactl\n"
            "dev2: /dev/nvidia-uvm\n"
            "dev3: /dev/nvidia-caps/nvidia-cap1\n"
        )

    @pytest.mark.unit
    def test_style_accepts_string(self, renderer, plan):
        assert renderer.render(plan, "dev") == renderer.render(plan, DirectiveStyle.DEV)

    @pytest.mark.unit
    def test_environment_line_for_specific_gpu(self, renderer, exists_from):
        planner = PassthroughPlanner(exists=exists_from(["/dev/nvidia1"]))
        plan = planner.plan([HostGpu(0, "a"), HostGpu(1, "b")], GpuSelection.specific(1))

        lines = renderer.render_lines(plan, "dev")

        assert lines == [
            "lxc.cgroup2.devices.allow: c 195:* rwm",
            "lxc.cgroup2.devices.allow: c 509:* rwm",
            "dev0: /dev/nvidia1",
            "lxc.environment: CUDA_VISIBLE_DEVICES=1",
        ]

    @pytest.mark.unit
    def test_empty_plan_still_has_cgroup_rules(self, renderer, exists_from):
        plan = PassthroughPlanner(exists=exists_from([])).plan([], GpuSelection.all())

        assert renderer.render_lines(plan) == [
            "lxc.cgroup2.devices.allow: c 195:* rwm",
            "lxc.cgroup2.devices.allow: c 509:* rwm",
        ]


class TestMountEntryStyle:
    """lxc.mount.entry bind-mount directives."""

    @pytest.mark.unit
    def test_render_lines(self, renderer, plan):
        lines = renderer.render_lines(plan, DirectiveStyle.MOUNT_ENTRY)

        assert lines[2:] == [
            "lxc.mount.entry: /dev/nvidia0 dev/nvidia0 none bind,optional,create=file",
            "lxc.mount.entry: /dev/nvidiactl dev/nvidiactl none bind,optional,create=file",
            "lxc.mount.entry: /dev/nvidia-uvm dev/nvidia-uvm none bind,optional,create=file",
            "lxc.mount.entry: /dev/nvidia-caps/nvidia-cap1 dev/nvidia-caps/nvidia-cap1 "
            "none bind,optional,create=file",
        ]

    @pytest.mark.unit
    def test_capability_node_keeps_subdirectory(self, renderer, exists_from):
        planner = PassthroughPlanner(exists=exists_from(
            ["/dev/nvidia-caps", "/dev/nvidia-caps/nvidia-cap1", "/dev/nvidia-caps/nvidia-cap2"]
        ))
        plan = planner.plan(
            [], GpuSelection.all(),
            capability_entries=["/dev/nvidia-caps/nvidia-cap2", "/dev/nvidia-caps/nvidia-cap1"],
        )

        text = renderer.render(plan, "mount-entry")

        assert text.endswith(
            "lxc.mount.entry: /dev/nvidia-caps/nvidia-cap1 dev/nvidia-caps/nvidia-cap1 "
            "none bind,optional,create=file\n"
            "lxc.mount.entry: /dev/nvidia-caps/nvidia-cap2 dev/nvidia-caps/nvidia-cap2 "
            "none bind,optional,create=file\n"
        )
        assert "dev/nvidia-cap1 " not in text

    @pytest.mark.unit
    def test_render_lines_drops_header_and_blank_lines(self, renderer, plan):
        text = renderer.render(plan, DirectiveStyle.MOUNT_ENTRY)
        lines = renderer.render_lines(plan, DirectiveStyle.MOUNT_ENTRY)

        assert text.startswith("\n# NVIDIA GPU Passthrough Configuration\n")
        assert lines[0] == "lxc.cgroup2.devices.allow: c 195:* rwm"
        assert all(line and not line.startswith("#") for line in lines)
        assert len(lines) == 2 + plan.device_count

    @pytest.mark.unit
    def test_styles_share_device_order(self, renderer, plan):
        dev_paths = [line.split(": ", 1)[1]
                     for line in renderer.render_lines(plan, "dev")
                     if line.startswith("dev")]
        mount_paths = [line.split()[1]
                       for line in renderer.render_lines(plan, "mount-entry")
                       if line.startswith("lxc.mount.entry")]

        assert dev_paths == mount_paths

    @pytest.mark.unit
    @pytest.mark.parametrize("path,target", [
        ("/dev/nvidia0", "dev/nvidia0"),
        ("/dev/nvidia-caps/nvidia-cap2", "dev/nvidia-caps/nvidia-cap2"),
        ("dev/nvidiactl", "dev/nvidiactl"),
    ])
    def test_mount_target(self, path, target):
        assert mount_target(path) == target


class TestRendererConfiguration:
    """Style parsing and template lookup."""

    @pytest.mark.unit
    def test_unknown_style_rejected(self, renderer, plan):
        with pytest.raises(InvalidConfigError):
            renderer.render(plan, "bind")

    @pytest.mark.unit
    def test_missing_template(self, plan):
        renderer = PlanRenderer(template_name="does-not-exist.j2")

        with pytest.raises(TemplateNotFoundError):
            renderer.render(plan)

    @pytest.mark.unit
    def test_template_dir_overrides_builtin(self, tmp_path, plan):
        (tmp_path / "gpu-passthrough.conf.j2").write_text(
            "{% for d in plan.directives %}dev{{ d.slot }}={{ d.path }}\n{% endfor %}"
        )
        renderer = PlanRenderer(template_dir=tmp_path)

        assert renderer.render(plan).splitlines()[0] == "dev0=/dev/nvidia0"

    @pytest.mark.unit
    def test_missing_template_dir_falls_back(self, tmp_path, plan):
        renderer = PlanRenderer(template_dir=tmp_path / "nope")

        assert "dev0: /dev/nvidia0" in renderer.render(plan)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
