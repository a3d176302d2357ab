"""
Bootstrap script generation for proxy farm instances.

The script is rendered from a Jinja2 template with named placeholders. All
inputs are validated before rendering so nothing unexpected ends up in the
nginx configuration or the shell script. Rendering is a pure function of
its inputs, which keeps synthesized templates byte-for-byte reproducible.
"""

import functools
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Tuple
from urllib.parse import urlparse

from aws_cdk import Token
from jinja2 import Environment, FileSystemLoader, StrictUndefined, Template

from .allow_list import AllowListRule, RuleAction, validate_port, with_deny_all
from .errors import FleetConfigurationError

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
TEMPLATE_NAME = "reverse_proxy.sh.j2"
NGINX_CONFIG_PATH = "/etc/nginx/conf.d/reverse-proxy.conf"

_INDEX_DOCUMENT_PATTERN = re.compile(r"^[A-Za-z0-9._-]+(/[A-Za-z0-9._-]+)*$")
_URL_FORBIDDEN_CHARS = re.compile(r"[\s;{}'\"`$\\]")


@dataclass(frozen=True)
class BootstrapInputs:
    """Validated inputs of the bootstrap template."""

    port: int
    rules: Tuple[AllowListRule, ...]
    index_document: str
    backend_base_url: str

    def __post_init__(self) -> None:
        validate_port(self.port)
        for rule in self.rules:
            if rule.action is not RuleAction.ALLOW:
                raise FleetConfigurationError(
                    f"Bootstrap rules must be allow rules, got '{rule.directive}'; "
                    "the deny-all rule is appended when rendering"
                )
            if rule.port != self.port:
                raise FleetConfigurationError(
                    f"Rule for {rule.source} targets port {rule.port}, expected {self.port}"
                )
        validate_index_document(self.index_document)
        validate_backend_url(self.backend_base_url)


def validate_index_document(index_document: str) -> str:
    if not isinstance(index_document, str) or not _INDEX_DOCUMENT_PATTERN.match(index_document):
        raise FleetConfigurationError(f"Invalid website index document: {index_document!r}")
    if any(segment in (".", "..") for segment in index_document.split("/")):
        raise FleetConfigurationError(f"Invalid website index document: {index_document!r}")
    return index_document


def validate_backend_url(url: str) -> str:
    """
    Check that ``url`` is an absolute http(s) URL safe to embed in nginx config.

    Unresolved CDK tokens are accepted as is; their value is only known at
    deploy time.
    """
    if not isinstance(url, str) or not url:
        raise FleetConfigurationError(f"Invalid backend URL: {url!r}")
    if Token.is_unresolved(url):
        return url
    if _URL_FORBIDDEN_CHARS.search(url):
        raise FleetConfigurationError(f"Backend URL contains forbidden characters: {url!r}")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise FleetConfigurationError(f"Backend URL must be an absolute http(s) URL: {url!r}")
    return url


@functools.lru_cache(maxsize=None)
def _load_template() -> Template:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
    )
    return env.get_template(TEMPLATE_NAME)


def render_bootstrap_script(
    port: int,
    rules: Sequence[AllowListRule],
    index_document: str,
    backend_base_url: str,
) -> str:
    """
    Render the user data script that turns an instance into a reverse proxy.

    Args:
        port: Port nginx listens on, over IPv4 and IPv6
        rules: Allow rules, rendered in order and closed by ``deny all``
        index_document: Document served for the root path
        backend_base_url: Website endpoint of the backend bucket

    Returns:
        The bootstrap shell script

    Raises:
        FleetConfigurationError: If any input fails validation
    """
    inputs = BootstrapInputs(
        port=port,
        rules=tuple(rules),
        index_document=index_document,
        backend_base_url=backend_base_url,
    )
    base_url = inputs.backend_base_url
    if not Token.is_unresolved(base_url):
        base_url = base_url.rstrip("/")

    script = _load_template().render(
        config_path=NGINX_CONFIG_PATH,
        port=inputs.port,
        access_rules=with_deny_all(inputs.rules, inputs.port),
        index_document=inputs.index_document,
        backend_base_url=base_url,
    )
    logger.debug(f"Rendered bootstrap script ({len(script)} bytes, {len(inputs.rules)} allow rules)")
    return script
