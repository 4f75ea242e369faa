"""
XML helpers shared by the document parsers.

All parsing goes through a strict lxml parser that never resolves external
entities or touches the network. Element lookups use local names so a
namespaced export parses the same as a plain one.
"""

import re
from typing import List, Optional, Union

from lxml import etree

from ...common.errors import ParseError

_XML_DECLARATION = re.compile(r'^\s*<\?xml[^>]*\?>')


def make_parser() -> etree.XMLParser:
    """Create a strict, non-networked parser. Callers use one per document."""
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        huge_tree=True,
        recover=False,
    )


def parse_document(content: Union[bytes, str], name: str):
    """
    Parse raw document content into its root element.

    bytes are decoded per the XML declaration (the AEMPS dump declares
    ISO-8859-1); str input has its declaration removed first since it is
    already decoded.

    Raises:
        ParseError: On malformed or undecodable content
    """
    if isinstance(content, str):
        content = _XML_DECLARATION.sub('', content, count=1)
    elif not isinstance(content, bytes):
        raise ParseError(name, f"unsupported content type {type(content).__name__}")

    try:
        return etree.fromstring(content, make_parser())
    except etree.XMLSyntaxError as e:
        raise ParseError(name, f"malformed XML: {e}") from e
    except (ValueError, UnicodeError, LookupError) as e:
        raise ParseError(name, f"cannot decode document: {e}") from e


def local_name(element) -> str:
    return etree.QName(element).localname


def children(element, tag: str) -> List:
    """Direct child elements with the given local name, in document order."""
    return [child for child in element
            if isinstance(child.tag, str) and local_name(child) == tag]


def child_text(element, tag: str) -> Optional[str]:
    """Stripped text of the first direct child named tag; None if absent or blank."""
    matches = children(element, tag)
    if not matches:
        return None
    text = (matches[0].text or '').strip()
    return text or None
