from __future__ import annotations

import html
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping

import markdown
from jinja2 import Environment, FileSystemLoader, select_autoescape
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor
from markdown.util import HTML_PLACEHOLDER_RE

from .config import MarkdownOptions, SiteConfig
from .content import spacing

HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}
RAW_TAGS = {"code", "pre", "script", "style"}
WHITESPACE_RE = re.compile(r"\s")
ATTR_RE = re.compile(r'([\w-]+)="([^"]*)"')
REF_ID_RE = re.compile(r"^#?fnref(\d*):(.+)$")
FOOTNOTE_ID_RE = re.compile(r"^#?fn:(.+)$")
TAG_RE = re.compile(r"<[^>]*>")
HTML_REPLACEMENTS = {"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;"}
UNSAFE_RE = re.compile(r'[&<>"]')
RULE_NAMES = ("heading_open", "footnote_ref", "footnote_anchor", "table_open", "text")
OUTPUT_FILE = "index.html"
HIGHLIGHT_CLASS = "codehilite"


@dataclass(frozen=True)
class RuleContext:
    """What a rule sees of the node it renders."""

    kind: str
    content: str = ""
    level: int = 0
    number: int = 0
    sub_id: int = 0


Rule = Callable[[RuleContext], str]


def escape_html(text: str) -> str:
    if UNSAFE_RE.search(text):
        return UNSAFE_RE.sub(lambda m: HTML_REPLACEMENTS[m.group(0)], text)
    return text


def heading_anchor_id(text: str) -> str:
    return WHITESPACE_RE.sub("_", text)


def _footnote_ref_id(number: int, sub_id: int) -> str:
    ref_id = f"fnref{number}"
    if sub_id > 0:
        ref_id += f":{sub_id}"
    return ref_id


def heading_open(ctx: RuleContext) -> str:
    anchor = escape_html(heading_anchor_id(ctx.content))
    return (
        f'<a href="#{anchor}" name="{anchor}" target="_self" class="anchor">'
        '<span class="header-link">#</span></a>&nbsp;'
    )


def footnote_ref(ctx: RuleContext) -> str:
    n = ctx.number
    return (
        f'<sup class="footnote-ref"><a href="#fn{n}" id="{_footnote_ref_id(n, ctx.sub_id)}" '
        f'target="_self">[{n}]</a></sup>'
    )


def footnote_anchor(ctx: RuleContext) -> str:
    ref_id = _footnote_ref_id(ctx.number, ctx.sub_id)
    return f' <a href="#{ref_id}" class="footnote-backref" target="_self">↩</a>'


def table_open(ctx: RuleContext) -> str:
    return '<table class="ui celled table">'


def spaced_text(ctx: RuleContext) -> str:
    return escape_html(spacing(ctx.content))


DEFAULT_RULES: dict[str, Rule] = {
    "heading_open": heading_open,
    "footnote_ref": footnote_ref,
    "footnote_anchor": footnote_anchor,
    "table_open": table_open,
}


def build_rules(autospacing: bool) -> dict[str, Rule]:
    rules = dict(DEFAULT_RULES)
    if autospacing:
        rules["text"] = spaced_text
    return rules


class RuleTreeprocessor(Treeprocessor):
    """Apply the named rules to the finished element tree.

    Rule output is raw markup, so it goes through the html stash and is
    swapped back in after serialization.
    """

    def __init__(self, md: markdown.Markdown, rules: Mapping[str, Rule]):
        super().__init__(md)
        self.rules = rules

    def run(self, root):
        parents = {child: parent for parent in root.iter() for child in parent}
        headings = [(el, self.heading_text(el)) for el in root.iter() if el.tag in HEADING_TAGS]
        numbers = self.number_footnotes(root)

        text_rule = self.rules.get("text")
        if text_rule is not None:
            self.walk_text(root, text_rule)

        rule = self.rules.get("heading_open")
        if rule is not None:
            for el, text in headings:
                ctx = RuleContext("heading_open", content=text, level=int(el.tag[1]))
                el.text = self.stash(rule(ctx)) + (el.text or "")

        rule = self.rules.get("table_open")
        if rule is not None:
            for el in list(root.iter("table")):
                for key, value in ATTR_RE.findall(rule(RuleContext("table_open"))):
                    el.set(key, html.unescape(value))

        rule = self.rules.get("footnote_ref")
        if rule is not None:
            for el in list(root.iter("sup")):
                ref = self.footnote_ref_target(el)
                if ref is None:
                    continue
                number, sub_id = self.resolve_ref(ref, numbers, el)
                self.replace(parents, el, rule(RuleContext("footnote_ref", number=number, sub_id=sub_id)))

        rule = self.rules.get("footnote_anchor")
        if rule is not None:
            for el in list(root.iter("a")):
                if "footnote-backref" not in (el.get("class") or "").split():
                    continue
                match = REF_ID_RE.match(el.get("href") or "")
                if match is None:
                    continue
                number, sub_id = self.resolve_ref(match, numbers, el)
                self.replace(parents, el, rule(RuleContext("footnote_anchor", number=number, sub_id=sub_id)))

    def heading_text(self, el) -> str:
        """Plain text of a heading, with stashed raw html reduced to its text."""
        return HTML_PLACEHOLDER_RE.sub(self.unstash_text, "".join(el.itertext()))

    def unstash_text(self, match: re.Match) -> str:
        index = int(match.group(1))
        blocks = self.md.htmlStash.rawHtmlBlocks
        if index >= len(blocks):
            return ""
        raw = blocks[index]
        if not isinstance(raw, str):
            raw = "".join(raw.itertext())
        return html.unescape(TAG_RE.sub("", raw))

    def number_footnotes(self, root) -> dict[str, int]:
        numbers: dict[str, int] = {}
        for div in root.iter("div"):
            if "footnote" not in (div.get("class") or "").split():
                continue
            for ol in div.iter("ol"):
                for index, li in enumerate(ol.findall("li"), start=1):
                    match = FOOTNOTE_ID_RE.match(li.get("id") or "")
                    if match is None:
                        continue
                    numbers[match.group(1)] = index
                    li.set("id", f"fn{index}")
        return numbers

    @staticmethod
    def footnote_ref_target(el):
        match = REF_ID_RE.match(el.get("id") or "")
        if match is None:
            return None
        for child in el:
            if child.tag == "a" and "footnote-ref" in (child.get("class") or "").split():
                return match
        return None

    @staticmethod
    def resolve_ref(match: re.Match, numbers: Mapping[str, int], el) -> tuple[int, int]:
        label = match.group(2)
        number = numbers.get(label)
        if number is None:
            digits = "".join(el.itertext()).strip("[] ")
            number = int(digits) if digits.isdigit() else 0
        sub_id = int(match.group(1)) - 1 if match.group(1) else 0
        return number, sub_id

    def walk_text(self, element, rule: Rule) -> None:
        if element.tag in RAW_TAGS:
            return
        if element.text and element.text.strip():
            element.text = self.stash(rule(RuleContext("text", content=element.text)))
        for child in element:
            self.walk_text(child, rule)
            if child.tail and child.tail.strip():
                child.tail = self.stash(rule(RuleContext("text", content=child.tail)))

    def stash(self, markup: str) -> str:
        return self.md.htmlStash.store(markup)

    def replace(self, parents, element, markup: str) -> None:
        parent = parents[element]
        text = self.stash(markup) + (element.tail or "")
        index = list(parent).index(element)
        if index == 0:
            parent.text = (parent.text or "") + text
        else:
            previous = parent[index - 1]
            previous.tail = (previous.tail or "") + text
        parent.remove(element)


class RulesExtension(Extension):
    def __init__(self, rules: Mapping[str, Rule], **kwargs):
        super().__init__(**kwargs)
        self.rules = rules

    def extendMarkdown(self, md):
        md.treeprocessors.register(RuleTreeprocessor(md, self.rules), "minori_rules", 5)


def markdown_extensions(options: MarkdownOptions) -> tuple[list[str], dict[str, dict]]:
    extensions = ["tables", "fenced_code", "pymdownx.tilde"]
    configs: dict[str, dict] = {"pymdownx.tilde": {"subscript": options.sup_sub, "delete": True}}
    if options.abbr:
        extensions.append("abbr")
    if options.footnote:
        extensions.append("footnotes")
    if options.sup_sub or options.ins:
        extensions.append("pymdownx.caret")
        configs["pymdownx.caret"] = {"superscript": options.sup_sub, "insert": options.ins}
    if options.mark:
        extensions.append("pymdownx.mark")
    if options.highlight:
        extensions.append("codehilite")
        configs["codehilite"] = {"guess_lang": False, "css_class": HIGHLIGHT_CLASS}
    return extensions, configs


class MarkdownRenderer:
    def __init__(self, options: MarkdownOptions, rules: Mapping[str, Rule]):
        unknown = sorted(set(rules) - set(RULE_NAMES))
        if unknown:
            raise ValueError(f"Unknown render rules: {', '.join(unknown)}")
        self.extensions, self.extension_configs = markdown_extensions(options)
        self.rules = dict(rules)

    @classmethod
    def from_config(cls, config: SiteConfig) -> "MarkdownRenderer":
        return cls(config.markdown, build_rules(config.autospacing))

    def render(self, text: str) -> str:
        md = markdown.Markdown(
            extensions=[*self.extensions, RulesExtension(self.rules)],
            extension_configs=self.extension_configs,
        )
        return md.convert(text)


def make_environment(theme_dir: Path) -> Environment:
    return Environment(
        loader=FileSystemLoader(str(theme_dir)),
        autoescape=select_autoescape(["html", "xml"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def render_template(env: Environment, template: str, dest_dir: Path, context: Mapping) -> Path:
    output = env.get_template(template).render(**context)
    path = dest_dir / OUTPUT_FILE
    write_text(path, output)
    print(f"Rendered: {path}")
    return path
