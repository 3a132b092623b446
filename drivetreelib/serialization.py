"""JSON persistence for crawled trees.

The document mirrors the tree exactly: every object carries ``id``,
``name``, ``mimeType``, ``metadata``, ``permissions`` and an ordered
``children`` array. Trees are written once after a crawl and read once
before an analyze pass; reading converts straight into ``PathedNode``.

Both directions, including the JSON text itself, are handled with explicit
queues and stacks instead of recursion, so tree depth is unbounded.
"""

import json
import re
from collections import deque
from json.decoder import scanstring
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .aio.core.node import AccessControlEntry, Node, PathedNode, RemoteItem


class TreeFormatError(ValueError):
    """A persisted tree document is malformed."""


_ACE_FIELDS = (
    ('type', 'type'),
    ('role', 'role'),
    ('id', 'id'),
    ('email_address', 'emailAddress'),
    ('domain', 'domain'),
)


def item_to_dict(item: RemoteItem) -> Dict[str, Any]:
    permissions = None
    if item.permissions is not None:
        permissions = []
        for entry in item.permissions:
            permissions.append({
                key: getattr(entry, attr)
                for attr, key in _ACE_FIELDS
                if getattr(entry, attr) is not None
            })
    return {
        'id': item.id,
        'name': item.name,
        'mimeType': item.mime_type,
        'metadata': dict(item.metadata),
        'permissions': permissions,
    }


def item_from_dict(data: Any, where: str = "root") -> RemoteItem:
    """Parse the item fields of one tree object.

    Raises:
        TreeFormatError: If required fields are missing or mistyped
    """
    if not isinstance(data, dict):
        raise TreeFormatError(f"{where}: expected an object, got {type(data).__name__}")
    for key in ('id', 'name', 'mimeType'):
        if not isinstance(data.get(key), str):
            raise TreeFormatError(f"{where}: missing or non-string '{key}'")

    metadata = data.get('metadata') or {}
    if not isinstance(metadata, dict):
        raise TreeFormatError(f"{where}: 'metadata' must be an object")

    permissions: Optional[List[AccessControlEntry]] = None
    raw_permissions = data.get('permissions')
    if raw_permissions is not None:
        if not isinstance(raw_permissions, list):
            raise TreeFormatError(f"{where}: 'permissions' must be an array or null")
        permissions = []
        for entry in raw_permissions:
            if not isinstance(entry, dict):
                raise TreeFormatError(f"{where}: permission entries must be objects")
            permissions.append(AccessControlEntry(**{
                attr: entry.get(key) for attr, key in _ACE_FIELDS
            }))

    return RemoteItem(
        id=data['id'],
        name=data['name'],
        mime_type=data['mimeType'],
        metadata=metadata,
        permissions=permissions,
    )


def tree_to_dict(root: Union[Node, PathedNode]) -> Dict[str, Any]:
    """Convert a tree into nested plain dictionaries."""
    root_dict = item_to_dict(root.item)
    root_dict['children'] = []
    queue = deque([(root, root_dict)])
    while queue:
        node, node_dict = queue.popleft()
        for child in node.children:
            child_dict = item_to_dict(child.item)
            child_dict['children'] = []
            node_dict['children'].append(child_dict)
            queue.append((child, child_dict))
    return root_dict


def parse_tree(data: Any) -> PathedNode:
    """Build an unannotated analyze tree from a parsed JSON document.

    Raises:
        TreeFormatError: If the document is not a well-formed tree
    """
    if data is None:
        raise TreeFormatError("Document has no root object")
    root = PathedNode(item=item_from_dict(data))
    queue = deque([(data, root, root.name)])
    while queue:
        node_data, node, where = queue.popleft()
        children = node_data.get('children', [])
        if not isinstance(children, list):
            raise TreeFormatError(f"{where}: 'children' must be an array")
        for index, child_data in enumerate(children):
            child_where = f"{where}/children[{index}]"
            child = PathedNode(item=item_from_dict(child_data, child_where))
            node.children.append(child)
            queue.append((child_data, child, child_where))
    return root


def iter_tree_json(root: Union[Node, PathedNode], indent: Optional[int] = 2) -> Iterator[str]:
    """Yield the JSON text of a tree in chunks.

    Nodes are written from an explicit stack, so the depth of the tree is
    not limited by the interpreter's recursion limit. The text is the same
    as ``json.dumps(tree_to_dict(root), indent=indent, ensure_ascii=False)``.
    """
    item_sep = ',' if indent is not None else ', '

    def newline(level: int) -> str:
        return "\n" + " " * (indent * level) if indent is not None else ""

    def encode(value: Any, level: int) -> str:
        text = json.dumps(value, indent=indent, ensure_ascii=False)
        return text.replace("\n", newline(level))

    def open_node(node: Union[Node, PathedNode], level: int) -> str:
        fields = [
            newline(level + 1) + json.dumps(key) + ": " + encode(value, level + 1)
            for key, value in item_to_dict(node.item).items()
        ]
        fields.append(newline(level + 1) + '"children": [')
        return "{" + item_sep.join(fields)

    yield open_node(root, 0)
    # Frames are [children iterator, level, no child written yet]
    stack = [[iter(root.children), 0, True]]
    while stack:
        frame = stack[-1]
        children, level, first = frame
        child = next(children, None)
        if child is None:
            stack.pop()
            closing = "]" if first else newline(level + 1) + "]"
            yield closing + newline(level) + "}"
            continue
        frame[2] = False
        yield ("" if first else item_sep) + newline(level + 2) + open_node(child, level + 2)
        stack.append([iter(child.children), level + 2, True])


def dump_tree(root: Union[Node, PathedNode], indent: Optional[int] = 2) -> str:
    return "".join(iter_tree_json(root, indent))


def save_tree(root: Union[Node, PathedNode], path: Union[str, Path]) -> Path:
    """Write a tree as an indented UTF-8 JSON document."""
    path = Path(path)
    path.write_text(dump_tree(root), encoding='utf-8')
    return path


_WHITESPACE = re.compile(r'[ \t\n\r]*')


def _skip(text: str, idx: int) -> int:
    return _WHITESPACE.match(text, idx).end()


def _read_key(text: str, idx: int) -> Tuple[str, int]:
    """Read ``"key":`` at ``idx``; return the key and the value's offset."""
    if text[idx:idx + 1] != '"':
        raise json.JSONDecodeError("Expecting property name enclosed in double quotes", text, idx)
    key, idx = scanstring(text, idx + 1)
    idx = _skip(text, idx)
    if text[idx:idx + 1] != ':':
        raise json.JSONDecodeError("Expecting ':' delimiter", text, idx)
    return key, _skip(text, idx + 1)


def decode_document(text: str) -> Any:
    """Decode JSON text with an explicit stack of open containers.

    Scalars go through the standard decoder; objects and arrays are
    assembled here, so arbitrarily deep documents decode without
    recursion.

    Raises:
        json.JSONDecodeError: If ``text`` is not a single JSON value
    """
    decoder = json.JSONDecoder()
    # Frames are [container, key awaiting a value]; arrays use key None
    stack: List[list] = []
    idx = _skip(text, 0)
    while True:
        char = text[idx:idx + 1]
        if char == '{':
            idx = _skip(text, idx + 1)
            if text[idx:idx + 1] != '}':
                key, idx = _read_key(text, idx)
                stack.append([{}, key])
                continue
            value, idx = {}, idx + 1
        elif char == '[':
            idx = _skip(text, idx + 1)
            if text[idx:idx + 1] != ']':
                stack.append([[], None])
                continue
            value, idx = [], idx + 1
        else:
            value, idx = decoder.raw_decode(text, idx)

        # Attach the value, closing every container that ends here
        while True:
            if not stack:
                idx = _skip(text, idx)
                if idx != len(text):
                    raise json.JSONDecodeError("Extra data", text, idx)
                return value
            frame = stack[-1]
            container, key = frame
            if key is None:
                container.append(value)
            else:
                container[key] = value

            idx = _skip(text, idx)
            char = text[idx:idx + 1]
            if char == ',':
                idx = _skip(text, idx + 1)
                if key is not None:
                    frame[1], idx = _read_key(text, idx)
                break
            if char != ('}' if key is not None else ']'):
                raise json.JSONDecodeError("Expecting ',' delimiter", text, idx)
            stack.pop()
            value, idx = container, idx + 1


def loads_tree(text: str) -> PathedNode:
    try:
        data = decode_document(text)
    except json.JSONDecodeError as e:
        raise TreeFormatError(f"Not a JSON document: {e}") from e
    return parse_tree(data)


def load_tree(path: Union[str, Path]) -> PathedNode:
    """Read a persisted tree for an analyze pass.

    Raises:
        FileNotFoundError: If ``path`` does not exist
        TreeFormatError: If the document is malformed
    """
    path = Path(path)
    try:
        return loads_tree(path.read_text(encoding='utf-8'))
    except TreeFormatError as e:
        raise TreeFormatError(f"{path}: {e}") from e
