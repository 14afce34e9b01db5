"""
Manifest generation for the Argo CD objects of a registration.

Templates live in ``grs/manifests`` and are rendered with Jinja2. Every value
is emitted through the ``tojson`` filter, so caller supplied strings can never
break out of their YAML scalar.
"""

import logging
import os
from typing import Any

from jinja2 import BaseLoader, Environment
from ruamel.yaml import YAML

from grs.models import Application, AppProject

logger = logging.getLogger(__name__)

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "manifests")


class ManifestGenerator:
    """Generator for AppProject and Application manifests."""

    def __init__(self, templates_dir: str = TEMPLATES_DIR):
        self.templates_dir = templates_dir
        # trim_blocks and lstrip_blocks keep block tags from leaving blank lines behind
        self.env = Environment(loader=BaseLoader(), trim_blocks=True, lstrip_blocks=True)
        self._templates: dict[str, str] = {}
        logger.debug(f"ManifestGenerator initialized with templates from {templates_dir}")

    def _load_template(self, template_name: str) -> str:
        if template_name not in self._templates:
            with open(os.path.join(self.templates_dir, template_name), encoding="utf-8") as f:
                self._templates[template_name] = f.read()
        return self._templates[template_name]

    def template_manifest(self, manifest_content: str, variables: dict[str, Any]) -> str:
        """
        Render Jinja2 template variables in a manifest.

        Args:
            manifest_content: The content of the manifest template
            variables: Dictionary of variables, may contain nested objects

        Returns:
            The rendered manifest, ending with a newline
        """
        logger.debug(f"Templating manifest with variables: {list(variables.keys())}")
        result = self.env.from_string(manifest_content).render(**variables)
        # convention: files should end with a newline
        if not result.endswith("\n"):
            result += "\n"
        return result

    def render_app_project(self, project: AppProject) -> str:
        return self.template_manifest(self._load_template("app-project.yaml.jinja"), {"project": project})

    def render_application(self, application: Application) -> str:
        return self.template_manifest(self._load_template("application.yaml.jinja"), {"application": application})


def parse_manifest(manifest: str) -> dict[str, Any]:
    """Parse a rendered manifest back into a plain dictionary."""
    yaml = YAML(typ="safe")
    return yaml.load(manifest)
