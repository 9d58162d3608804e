from __future__ import annotations

import re
import sys
from typing import Callable, Sequence

from latex2mathml.converter import convert

MATH_BLOCK_RE = re.compile(r"\^{3}math(.*?)\^{3}", re.DOTALL)
MATH_INPUTS = ("TeX", "MathML")

Typesetter = Callable[[str, Sequence[str]], str]


def typeset(expression: str, inputs: Sequence[str] = MATH_INPUTS) -> str:
    """Turn a TeX (or ready-made MathML) expression into display MathML."""
    expression = expression.strip()
    if "MathML" in inputs and expression.startswith("<math"):
        return expression
    if "TeX" not in inputs:
        raise ValueError(f"Cannot typeset expression with inputs {list(inputs)}: {expression!r}")
    return convert(expression, display="block")


def find_math_blocks(text: str) -> list[re.Match]:
    return list(MATH_BLOCK_RE.finditer(text))


def resolve_math(
    text: str,
    enabled: bool,
    typesetter: Typesetter = typeset,
    source: str = "",
) -> str:
    """Replace every ``^^^math ... ^^^`` block with typeset markup.

    Blocks are typeset one at a time from left to right. Each result
    replaces the span of its own block, so identical blocks in one document
    are each substituted in place. With math disabled the text is returned
    untouched.
    """
    blocks = find_math_blocks(text)
    if not blocks:
        return text
    if not enabled:
        label = f" in {source}" if source else ""
        print(f"WARNING: math blocks detected{label} while math rendering is disabled.", file=sys.stderr)
        return text

    parts = []
    last = 0
    for match in blocks:
        parts.append(text[last : match.start()])
        parts.append(typesetter(match.group(1), MATH_INPUTS))
        last = match.end()
    parts.append(text[last:])
    return "".join(parts)
