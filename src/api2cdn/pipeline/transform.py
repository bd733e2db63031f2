"""
ModuleTransformer - JSON to ES Module Rendering

Turns an arbitrary JSON document into a statically importable JavaScript
module with exactly two exports: the data, named after the endpoint, and a
``metadata`` record. The text format is consumed by clients that parse it as
well as execute it, so the layout below must stay byte-stable.
"""

from __future__ import annotations

import json
import logging
import os
import re
import stat
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ..domain.models import EndpointSpec
from ..types import FilesystemError, UpstreamProtocolError
from ..utils import ensure_directory

logger = logging.getLogger(__name__)

GENERATOR_TAG = "api-to-cdn-sync"
SCHEMA_VERSION = "1.0.0"

# Words that cannot be bound with ``export const``
JS_RESERVED_WORDS = frozenset({
    'await', 'break', 'case', 'catch', 'class', 'const', 'continue', 'debugger',
    'default', 'delete', 'do', 'else', 'enum', 'export', 'extends', 'false',
    'finally', 'for', 'function', 'if', 'implements', 'import', 'in',
    'instanceof', 'interface', 'let', 'new', 'null', 'package', 'private',
    'protected', 'public', 'return', 'static', 'super', 'switch', 'this',
    'throw', 'true', 'try', 'typeof', 'var', 'void', 'while', 'with', 'yield',
    'metadata',
})

_CAMEL_BOUNDARY = re.compile(r"-([a-z])")
_INVALID_IDENTIFIER_CHARS = re.compile(r"[^A-Za-z0-9_$]")

MODULE_TEMPLATE = """\
// Generated on {timestamp}
// Source: {source}

export const {identifier} = {payload};

export const metadata = {{
  timestamp: {timestamp_literal},
  source: {source_literal},
  generator: {generator_literal},
  version: {version_literal}
}};

// Usage example:
// import {{ {identifier}, metadata }} from './{output_file}';
// console.log('Data generated:', metadata.timestamp);
"""


def derive_identifier(name: str) -> str:
    """
    Convert an endpoint name to a bare JavaScript identifier.

    ``trading-instruments`` becomes ``tradingInstruments``. Characters left
    over after the kebab-to-camel step (hyphens before digits or capitals,
    trailing hyphens, anything outside the identifier alphabet) become ``_``;
    a leading digit or an empty result gets a ``_`` prefix and reserved words
    (including ``metadata``, which is already taken) get a ``_`` suffix.
    """
    identifier = _CAMEL_BOUNDARY.sub(lambda m: m.group(1).upper(), name)
    identifier = _INVALID_IDENTIFIER_CHARS.sub("_", identifier)
    if not identifier or identifier[0].isdigit():
        identifier = f"_{identifier}"
    if identifier in JS_RESERVED_WORDS:
        identifier = f"{identifier}_"
    return identifier


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def serialize_data(data: Any) -> str:
    """Pretty JSON preserving input key order."""
    return json.dumps(data, indent=2, ensure_ascii=False)


def count_records(data: Any) -> int:
    """Number of records in a ``{"data": [...]}`` envelope or a bare list."""
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        return len(data["data"])
    if isinstance(data, list):
        return len(data)
    return 0


class ModuleTransformer:
    """
    Renders and persists generated modules.

    The generator tag and schema version are fixed per transformer and end up
    in every module's ``metadata`` export.
    """

    def __init__(self, generator: str = GENERATOR_TAG, version: str = SCHEMA_VERSION):
        self.generator = generator
        self.version = version

    def render(self, data: Any, endpoint: EndpointSpec, generated_at: Optional[datetime] = None) -> str:
        """
        Render ``data`` as an ES module.

        Args:
            data: Any JSON-compatible value, including empty containers and None
            endpoint: Supplies the export name and the source label
            generated_at: Capture time; defaults to now. The same value is used
                in the header comment and in ``metadata.timestamp``.

        Returns:
            Module text
        """
        timestamp = format_timestamp(generated_at or datetime.now(timezone.utc))
        identifier = derive_identifier(endpoint.name)

        return MODULE_TEMPLATE.format(
            timestamp=timestamp,
            source=endpoint.name,
            identifier=identifier,
            payload=serialize_data(data),
            timestamp_literal=json.dumps(timestamp),
            source_literal=json.dumps(endpoint.name, ensure_ascii=False),
            generator_literal=json.dumps(self.generator),
            version_literal=json.dumps(self.version),
            output_file=endpoint.output_file,
        )

    def persist(self, content: str, destination: Path, atomic: bool = True) -> Path:
        """
        Write module text, replacing any previous file.

        Args:
            content: Rendered module text
            destination: Target file; missing parent directories are created
            atomic: Write a sibling temp file and rename it into place. When
                False the destination is overwritten directly.

        Returns:
            The destination path

        Raises:
            FilesystemError: Directory creation or write failure
        """
        destination = Path(destination)
        payload = content.encode("utf-8")

        try:
            if not destination.parent.exists():
                ensure_directory(destination.parent)
                logger.info(f"Created directory: {destination.parent}")

            if atomic:
                self._replace_atomically(payload, destination)
            else:
                destination.write_bytes(payload)
        except OSError as e:
            raise FilesystemError(f"Failed to write {destination}: {e}") from e

        logger.info(f"Saved file: {destination} ({len(payload)} bytes)")
        return destination

    @staticmethod
    def _target_mode(destination: Path) -> int:
        """Mode of the file being replaced, else what a plain create would get."""
        try:
            return stat.S_IMODE(destination.stat().st_mode)
        except FileNotFoundError:
            umask = os.umask(0)
            os.umask(umask)
            return 0o666 & ~umask

    @classmethod
    def _replace_atomically(cls, payload: bytes, destination: Path) -> None:
        mode = cls._target_mode(destination)
        fd, tmp_name = tempfile.mkstemp(dir=destination.parent, prefix=f".{destination.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            # mkstemp creates 0600
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, destination)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    @staticmethod
    def extract_data(module_text: str, identifier: str) -> Any:
        """
        Parse the embedded data literal back out of a generated module.

        Raises:
            UpstreamProtocolError: The module has no such export or it is not JSON
        """
        marker = f"export const {identifier} = "
        start = module_text.find(marker)
        if start == -1:
            raise UpstreamProtocolError(f"Module has no export named '{identifier}'")
        try:
            value, _ = json.JSONDecoder().raw_decode(module_text, start + len(marker))
        except json.JSONDecodeError as e:
            raise UpstreamProtocolError(f"Export '{identifier}' is not a JSON literal: {e}") from e
        return value
