from __future__ import annotations

import hashlib
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

try:
    import tomllib as toml
except ImportError:
    try:
        import tomli as toml
    except ImportError:  # pragma: no cover - optional dependency
        toml = None

import yaml

from .utils import BuildError

DEFAULT_CONFIG = "config.yml"
DEFAULT_LASTUPDATE = "%n%%n%_Last Update: %mtime%_ [Source File](%sourcepath%)%n%"
DEFAULT_TIME_FORMAT = "%Y-%m-%d %H:%M"
LASTUPDATE_SOURCES = {"mtime", "frontmatter"}


def load_config(path: Path) -> dict:
    if not path.exists():
        raise BuildError(
            f"Error when reading configuration: {path} does not exist. Are you in the correct directory?"
        )
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        if toml is None:
            raise BuildError("TOML config requires tomllib (Python 3.11+) or tomli.")
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise BuildError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise BuildError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            data = {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise BuildError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise BuildError(f"Config must be a mapping: {path}")
    return data


def _section(data: Mapping, key: str) -> Mapping:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        print(f"WARNING: config section '{key}' is not a mapping, ignoring it.", file=sys.stderr)
        return {}
    return value


def _str(section: Mapping, key: str, default: str) -> str:
    value = section.get(key)
    return default if value is None else str(value)


TRUE_WORDS = {"1", "true", "yes", "y", "on"}
FALSE_WORDS = {"0", "false", "no", "n", "off", ""}


def _flag(section: Mapping, key: str, default: bool = False) -> bool:
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, (bool, int, float)):
        return bool(value)
    word = str(value).strip().lower()
    if word in TRUE_WORDS or word in FALSE_WORDS:
        return word in TRUE_WORDS
    print(f"WARNING: config value {key}={value!r} is not a boolean, using {default}.", file=sys.stderr)
    return default


def _count(section: Mapping, key: str, default: int, minimum: int = 1) -> int:
    value = section.get(key)
    if value is None:
        return default
    try:
        count = int(str(value).strip())
    except ValueError:
        print(f"WARNING: config value {key}={value!r} is not a number, using {default}.", file=sys.stderr)
        count = default
    return max(minimum, count)


@dataclass(frozen=True)
class MarkdownOptions:
    abbr: bool = True
    sup_sub: bool = True
    footnote: bool = True
    mark: bool = True
    ins: bool = True
    highlight: bool = True


@dataclass(frozen=True)
class SiteConfig:
    root: Path = field(default_factory=Path.cwd)
    base_path: str = "/"
    source_dir: str = "notes"
    site_dir: str = "site"
    page_dir: str = "page"
    raw_dir: str = "raw"
    theme: str = "default"
    log: bool = False
    log_max: int = 20
    favicon: bool = False
    email: str = ""
    math: bool = False
    autospacing: bool = False
    markdown: MarkdownOptions = field(default_factory=MarkdownOptions)
    lastupdate: str = DEFAULT_LASTUPDATE
    lastupdate_source: str = "mtime"
    time_format: str = DEFAULT_TIME_FORMAT
    cname: str = ""
    identity_hash: str = field(init=False, default="")

    def __post_init__(self) -> None:
        if self.lastupdate_source not in LASTUPDATE_SOURCES:
            raise BuildError(
                f"Unknown lastupdate_source '{self.lastupdate_source}', "
                f"expected one of: {', '.join(sorted(LASTUPDATE_SOURCES))}"
            )
        digest = hashlib.md5(self.email.strip().lower().encode("utf-8")).hexdigest()
        object.__setattr__(self, "identity_hash", digest)

    @property
    def source_path(self) -> Path:
        return self.root / self.source_dir

    @property
    def site_path(self) -> Path:
        return self.root / self.site_dir

    @property
    def raw_path(self) -> Path:
        return self.site_path / self.raw_dir

    @property
    def pages_path(self) -> Path:
        return self.site_path / self.page_dir

    @classmethod
    def from_mapping(cls, data: Mapping, root: Path) -> "SiteConfig":
        base = _section(data, "base")
        dirs = _section(data, "dir")
        wiki = _section(data, "wiki")
        custom = _section(data, "custom")
        deploy = _section(data, "deploy")
        md = _section(custom, "markdown")

        base_path = _str(base, "path", "/")
        if not base_path.endswith("/"):
            base_path += "/"

        return cls(
            root=root,
            base_path=base_path,
            source_dir=_str(dirs, "source", "notes"),
            site_dir=_str(dirs, "site", "site"),
            page_dir=_str(dirs, "page", "page"),
            raw_dir=_str(dirs, "raw", "raw"),
            theme=_str(wiki, "theme", "default"),
            log=_flag(wiki, "log"),
            log_max=_count(wiki, "logmax", 20),
            favicon=_flag(wiki, "favicon"),
            email=_str(wiki, "email", ""),
            math=_flag(custom, "mathjax"),
            autospacing=_flag(custom, "autospacing"),
            markdown=MarkdownOptions(
                abbr=_flag(md, "abbr", True),
                sup_sub=_flag(md, "sup_sub", True),
                footnote=_flag(md, "footnote", True),
                mark=_flag(md, "mark", True),
                ins=_flag(md, "ins", True),
                highlight=_flag(md, "highlight", True),
            ),
            lastupdate=_str(custom, "lastupdate", "") or DEFAULT_LASTUPDATE,
            lastupdate_source=_str(custom, "lastupdate_source", "mtime").strip().lower(),
            time_format=_str(custom, "time", "") or DEFAULT_TIME_FORMAT,
            cname=_str(deploy, "cname", "").strip(),
        )


def read_site_config(path: Path) -> SiteConfig:
    path = path.resolve()
    return SiteConfig.from_mapping(load_config(path), path.parent)
