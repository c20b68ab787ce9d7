"""
Namespace-tolerant XML to dictionary conversion.

13F XML documents come from many filing agents and use whatever namespace
prefixes they like (``ns1:infoTable``, ``n1:infoTable``, a default
namespace, or none at all). This module strips every prefix and lowercases
every tag so downstream extractors can address elements by one name.

Conversion rules:
- An element without children becomes its stripped text.
- An element with children becomes a dict keyed by lowercase local tag.
- Repeated sibling tags become a list.
- Attributes are ignored; 13F data lives in element text.
"""

import re
import xml.etree.ElementTree as ET
from typing import Any, Optional

from ..core.exceptions import StructuralParseError

# Opening/closing tag prefixes such as "<ns1:" or "</n1:"
_TAG_PREFIX_RE = re.compile(r"<(/?)[A-Za-z_][\w.-]*:(?=[A-Za-z_])")


def local_name(tag: str) -> str:
    """Return the lowercase tag without any ``{namespace}`` part."""
    if "}" in tag:
        tag = tag.rsplit("}", 1)[1]
    if ":" in tag:
        tag = tag.rsplit(":", 1)[1]
    return tag.lower()


def strip_namespace_prefixes(xml_text: str) -> str:
    """Remove ``prefix:`` from element tags, leaving declarations intact."""
    return _TAG_PREFIX_RE.sub(r"<\1", xml_text)


def element_to_tree(element: ET.Element) -> Any:
    """Convert an element into nested dicts, lists and strings."""
    children = list(element)
    if not children:
        return (element.text or "").strip()

    result: dict[str, Any] = {}
    for child in children:
        key = local_name(child.tag)
        value = element_to_tree(child)
        if key in result:
            existing = result[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                result[key] = [existing, value]
        else:
            result[key] = value
    return result


def parse_xml(content: str | bytes, source: Optional[str] = None) -> dict[str, Any]:
    """
    Parse an XML document into a generic tree.

    Args:
        content: Raw XML document.
        source: URL or name of the document, used in error context.

    Returns:
        ``{root_tag: tree}`` with lowercase, prefix-free keys.

    Raises:
        StructuralParseError: If the document is empty or not well-formed.
    """
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")

    # ElementTree rejects a leading BOM or whitespace before the declaration
    content = content.lstrip("\ufeff \t\r\n")
    if not content:
        raise StructuralParseError("Empty XML document", context={"source": source})

    try:
        root = ET.fromstring(strip_namespace_prefixes(content))
    except ET.ParseError as e:
        raise StructuralParseError(
            f"Malformed XML: {e}", context={"source": source}
        ) from e

    return {local_name(root.tag): element_to_tree(root)}


def as_list(value: Any) -> list:
    """Wrap a single node in a list; map None and "" to an empty list."""
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    return [value]


def find_path(tree: Any, *path: str) -> Any:
    """
    Walk nested dicts by key, returning None when any step is missing.

    Usage:
        find_path(primary, "edgarsubmission", "formdata", "coverpage")
    """
    node = tree
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
        if node is None:
            return None
    return node
