"""
XML/HTML helper utilities shared by the extractor and the reconstructor

Chapter markup is parsed the same way on every pass so that structural
addresses recorded during extraction resolve again during reconstruction.
"""
import re
from html.entities import name2codepoint
from typing import List, Optional, Tuple

from lxml import etree, html as lxml_html

XHTML_NAMESPACE = 'http://www.w3.org/1999/xhtml'

VOID_ELEMENTS = frozenset({
    'area', 'base', 'br', 'col', 'embed', 'hr', 'img', 'input',
    'link', 'meta', 'source', 'track', 'wbr',
})

NON_TEXT_ELEMENTS = frozenset({'script', 'style'})

_XML_DECLARATION = re.compile(r'^\s*<\?xml[^>]*\?>', re.IGNORECASE)
_NAMED_ENTITY = re.compile(r'&([A-Za-z][A-Za-z0-9]*);')
_XML_ENTITIES = frozenset({'amp', 'lt', 'gt', 'quot', 'apos'})

_TAG_TOKEN = re.compile(
    r'<!--.*?-->'
    r'|<!\[CDATA\[.*?\]\]>'
    r'|<\?.*?\?>'
    r'|<![^>]*>'
    r'|<(?P<closing>/?)(?P<name>[A-Za-z][\w:.\-]*)'
    r'(?P<attrs>(?:\s+[^\s=>/]+(?:\s*=\s*(?:"[^"]*"|\'[^\']*\'|[^\s>]+))?)*)'
    r'\s*(?P<selfclose>/?)>',
    re.DOTALL
)
_HTML_START_TAG = re.compile(r'<html\b(?P<attrs>[^>]*)>', re.IGNORECASE)


def local_name(element) -> str:
    """Tag name without namespace, lower-cased ('' for comments and PIs)."""
    tag = element.tag
    if not isinstance(tag, str):
        return ''
    return etree.QName(tag).localname.lower() if tag.startswith('{') else tag.lower()


def is_element(node) -> bool:
    return isinstance(node.tag, str)


def _numeric_entities(markup: str) -> str:
    """Rewrite HTML named entities (&nbsp; etc.) as numeric references XML understands."""
    def replace(match):
        name = match.group(1)
        if name in _XML_ENTITIES or name not in name2codepoint:
            return match.group(0)
        return f'&#{name2codepoint[name]};'
    return _NAMED_ENTITY.sub(replace, markup)


def parse_markup(markup: str) -> Tuple[etree._ElementTree, bool]:
    """
    Parse chapter markup leniently.

    Strict-ish XML parsing (libxml2 recover mode) is tried first; documents it
    cannot make sense of are handed to the HTML parser.

    Returns:
        (tree, parsed_as_xml)
    """
    cleaned = _numeric_entities(_XML_DECLARATION.sub('', markup, count=1))

    parser = etree.XMLParser(recover=True, resolve_entities=False, huge_tree=True)
    root = None
    try:
        root = etree.fromstring(cleaned.encode('utf-8'), parser)
    except etree.XMLSyntaxError:
        root = None

    if root is not None and local_name(root) == 'html':
        return root.getroottree(), True

    root = lxml_html.document_fromstring(cleaned)
    return root.getroottree(), False


def collect_text(element) -> str:
    """Concatenated text of an element and its descendants, skipping scripts and styles."""
    parts: List[str] = []

    def walk(node):
        if node.text:
            parts.append(node.text)
        for child in node:
            if is_element(child) and local_name(child) not in NON_TEXT_ELEMENTS:
                walk(child)
            if child.tail:
                parts.append(child.tail)

    walk(element)
    return ''.join(parts)


def normalize_text(text: str) -> str:
    """Collapse whitespace runs and trim."""
    return ' '.join(text.split())


def build_node_path(element) -> str:
    """
    Deterministic address of an element: local names with 1-based ordinals
    among same-named element siblings, e.g. /html[1]/body[1]/div[2]/p[3].
    """
    steps = []
    node = element
    while node is not None:
        name = local_name(node)
        parent = node.getparent()
        index = 1
        if parent is not None:
            for sibling in parent:
                if sibling is node:
                    break
                if is_element(sibling) and local_name(sibling) == name:
                    index += 1
        steps.append(f'{name}[{index}]')
        node = parent
    return '/' + '/'.join(reversed(steps))


_PATH_STEP = re.compile(r'^([\w.\-]+)\[(\d+)\]$')


def resolve_node_path(root, path: str) -> Optional[etree._Element]:
    """Follow an address produced by build_node_path. Returns None if it no longer resolves."""
    steps = [step for step in path.split('/') if step]
    if not steps:
        return None

    parsed = []
    for step in steps:
        match = _PATH_STEP.match(step)
        if not match:
            return None
        parsed.append((match.group(1), int(match.group(2))))

    name, index = parsed[0]
    if local_name(root) != name or index != 1:
        return None

    node = root
    for name, index in parsed[1:]:
        seen = 0
        found = None
        for child in node:
            if is_element(child) and local_name(child) == name:
                seen += 1
                if seen == index:
                    found = child
                    break
        if found is None:
            return None
        node = found
    return node


def ensure_well_formed_xhtml(markup: str) -> str:
    """
    Repair markup so it satisfies strict XML well-formedness:

    - void elements (br, img, link, meta, ...) are emitted self-closed and
      stray closing tags for them are dropped;
    - self-closed non-void elements (<div/>) get an explicit closing tag;
    - unclosed elements are closed before their parent closes or at the end;
    - closing tags with no matching open element are dropped;
    - the html element carries the XHTML namespace.
    """
    output: List[str] = []
    stack: List[str] = []
    position = 0

    for match in _TAG_TOKEN.finditer(markup):
        output.append(markup[position:match.start()])
        position = match.end()

        name = match.group('name')
        if name is None:
            # Comment, CDATA, processing instruction or doctype
            output.append(match.group(0))
            continue

        bare = name.split(':')[-1].lower()
        attrs = match.group('attrs').rstrip()

        if match.group('closing'):
            if bare in VOID_ELEMENTS:
                continue
            if name in stack:
                while stack:
                    open_name = stack.pop()
                    output.append(f'</{open_name}>')
                    if open_name == name:
                        break
            continue

        if bare in VOID_ELEMENTS:
            output.append(f'<{name}{attrs} />')
        elif match.group('selfclose'):
            output.append(f'<{name}{attrs}></{name}>')
        else:
            stack.append(name)
            output.append(f'<{name}{attrs}>')

    output.append(markup[position:])
    while stack:
        output.append(f'</{stack.pop()}>')

    return _ensure_xhtml_namespace(''.join(output))


def _ensure_xhtml_namespace(markup: str) -> str:
    match = _HTML_START_TAG.search(markup)
    if match is None or 'xmlns=' in match.group('attrs'):
        return markup
    return (markup[:match.start()]
            + f'<html xmlns="{XHTML_NAMESPACE}"{match.group("attrs")}>'
            + markup[match.end():])


def serialize_tree(tree: etree._ElementTree) -> str:
    """Serialize a parsed chapter back to a complete XHTML string."""
    root = tree.getroot()
    body = etree.tostring(root, encoding='unicode', method='xml')
    doctype = tree.docinfo.doctype
    header = '<?xml version="1.0" encoding="utf-8"?>\n'
    if doctype:
        header += doctype + '\n'
    return ensure_well_formed_xhtml(header + body)
