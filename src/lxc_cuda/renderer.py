"""
lxc-cuda - Passthrough Plan Renderer

Turns a PassthroughPlan into the text appended to a container's
configuration file. Two directive styles expose the same devices:

    dev0: /dev/nvidia0
    lxc.mount.entry: /dev/nvidia0 dev/nvidia0 none bind,optional,create=file
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import List, Optional, Union

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, TemplateNotFound

from common.exceptions import InvalidConfigError, TemplateNotFoundError

from .planner import PassthroughPlan

logger = logging.getLogger(__name__)

PACKAGE_TEMPLATE_DIR = Path(__file__).parent / "templates"
DEFAULT_TEMPLATE = "gpu-passthrough.conf.j2"


class DirectiveStyle(Enum):
    """Textual form of device directives."""
    DEV = "dev"                  # Proxmox devN: entries
    MOUNT_ENTRY = "mount-entry"  # raw lxc.mount.entry bind mounts

    @classmethod
    def parse(cls, value: Union[str, "DirectiveStyle"]) -> "DirectiveStyle":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(style.value for style in cls)
            raise InvalidConfigError("directive_style", value, f"expected one of: {choices}")


def mount_target(path: str) -> str:
    """Container-relative bind target for a host device node."""
    pure = PurePosixPath(path)
    if pure.is_absolute():
        return str(pure.relative_to("/"))
    return str(pure)


class PlanRenderer:
    """
    Renders plans through a Jinja2 template.

    Search order:
    1. ``template_dir`` if given (lets a host override the layout)
    2. Templates shipped with the package
    """

    def __init__(self, template_dir: Optional[Path] = None,
                 template_name: str = DEFAULT_TEMPLATE):
        self.template_name = template_name
        self._env = self._create_environment(template_dir)

    def _create_environment(self, template_dir: Optional[Path]) -> Environment:
        loaders = []
        if template_dir is not None:
            template_dir = Path(template_dir)
            if template_dir.is_dir():
                loaders.append(FileSystemLoader(str(template_dir)))
                logger.debug(f"Added template path: {template_dir}")
            else:
                logger.warning(f"Template directory not found, using built-in: {template_dir}")
        loaders.append(FileSystemLoader(str(PACKAGE_TEMPLATE_DIR)))

        env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        env.filters["mount_target"] = mount_target
        return env

    def render(self, plan: PassthroughPlan,
               style: Union[DirectiveStyle, str] = DirectiveStyle.DEV) -> str:
        """
        Render the configuration block for a plan.

        Raises:
            TemplateNotFoundError: If the template cannot be loaded
            InvalidConfigError: If ``style`` is not a known style
        """
        style = DirectiveStyle.parse(style)
        try:
            template = self._env.get_template(self.template_name)
        except TemplateNotFound:
            raise TemplateNotFoundError(self.template_name)

        text = template.render(plan=plan, style=style.value)
        if not text.endswith("\n"):
            text += "\n"
        return text

    def render_lines(self, plan: PassthroughPlan,
                     style: Union[DirectiveStyle, str] = DirectiveStyle.DEV) -> List[str]:
        """Directive lines only, without comments or blank lines."""
        return [
            line for line in self.render(plan, style).splitlines()
            if line.strip() and not line.lstrip().startswith("#")
        ]
