"""
Low-level helpers for reading and rewriting the document tree.

Runs (w:r) are the text-bearing leaves. Their text lives in w:t children, or
in w:delText children when the run sits inside a tracked deletion. Tracked
spans (w:ins / w:del) wrap one or more runs. Everything in this module works
on single elements; bookkeeping for the ledger lives with the operations.
"""

from collections.abc import Iterator
from copy import deepcopy

from lxml import etree

from .constants import FORMAT_FLAGS, NSMAP, XML_NAMESPACE, w

SPAN_TAGS = (w("ins"), w("del"))
TEXT_TAGS = (w("t"), w("delText"))


def is_run(element: etree._Element) -> bool:
    return element.tag == w("r")


def is_paragraph(element: etree._Element) -> bool:
    return element.tag == w("p")


def is_span(element: etree._Element | None) -> bool:
    return element is not None and element.tag in SPAN_TAGS


def is_insertion(element: etree._Element | None) -> bool:
    return element is not None and element.tag == w("ins")


def is_deletion(element: etree._Element | None) -> bool:
    return element is not None and element.tag == w("del")


# Runs


def run_text(run: etree._Element) -> str:
    """Extract text from a run, covering both w:t and w:delText children.

    Only direct text children are read so XML structural whitespace between
    elements never leaks into the result.
    """
    return "".join(child.text or "" for child in run if child.tag in TEXT_TAGS)


def _preserve_space(text_elem: etree._Element, text: str) -> None:
    """Set or clear xml:space="preserve" for leading/trailing whitespace."""
    key = f"{{{XML_NAMESPACE}}}space"
    if text and (text[0].isspace() or text[-1].isspace()):
        text_elem.set(key, "preserve")
    elif key in text_elem.attrib:
        del text_elem.attrib[key]


def set_run_text(run: etree._Element, text: str) -> None:
    """Replace the text of a run, collapsing multiple text children into one."""
    text_elems = [child for child in run if child.tag in TEXT_TAGS]
    if text_elems:
        text_elem = text_elems[0]
        for extra in text_elems[1:]:
            run.remove(extra)
    else:
        tag = w("delText") if is_deletion(run.getparent()) else w("t")
        text_elem = etree.SubElement(run, tag)
    text_elem.text = text
    _preserve_space(text_elem, text)


def run_properties(run: etree._Element) -> etree._Element | None:
    """Get the w:rPr child of a run, if any."""
    return run.find(w("rPr"))


def make_run(
    text: str, properties: etree._Element | None = None, deleted: bool = False
) -> etree._Element:
    """Build a new run holding ``text``.

    Args:
        text: Text content of the run
        properties: A w:rPr element to copy onto the run (optional)
        deleted: Store the text in w:delText instead of w:t
    """
    run = etree.Element(w("r"), nsmap=NSMAP)
    if properties is not None:
        run.append(deepcopy(properties))
    text_elem = etree.SubElement(run, w("delText") if deleted else w("t"))
    text_elem.text = text
    _preserve_space(text_elem, text)
    return run


def split_run(run: etree._Element, offset: int) -> etree._Element:
    """Split a run in two at a character offset.

    The original run keeps ``text[:offset]``; a new run carrying the same
    properties and ``text[offset:]`` is inserted right after it and returned.
    """
    text = run_text(run)
    deleted = any(child.tag == w("delText") for child in run)
    tail = make_run(text[offset:], run_properties(run), deleted=deleted)
    set_run_text(run, text[:offset])
    run.addnext(tail)
    return tail


def convert_run_text(run: etree._Element, deleted: bool) -> None:
    """Switch a run's text children between w:t and w:delText."""
    source, target = (w("t"), w("delText")) if deleted else (w("delText"), w("t"))
    for child in run:
        if child.tag == source:
            child.tag = target


def format_flags(run: etree._Element) -> dict[str, bool]:
    """Read the boolean formatting flags of a run."""
    rpr = run_properties(run)
    flags = {}
    for flag, tag in FORMAT_FLAGS.items():
        elem = rpr.find(w(tag)) if rpr is not None else None
        enabled = elem is not None and elem.get(w("val")) not in ("0", "false", "none")
        flags[flag] = enabled
    return flags


def apply_format_flags(run: etree._Element, flags: dict[str, bool]) -> None:
    """Write formatting flags onto a run, creating w:rPr when needed."""
    enabled = [flag for flag, tag in FORMAT_FLAGS.items() if flags.get(flag)]
    if not enabled:
        return
    rpr = run_properties(run)
    if rpr is None:
        rpr = etree.Element(w("rPr"), nsmap=NSMAP)
        run.insert(0, rpr)
    for flag in enabled:
        elem = etree.SubElement(rpr, w(FORMAT_FLAGS[flag]))
        if flag == "underline":
            elem.set(w("val"), "single")


# Spans and structure


def enclosing_span(run: etree._Element) -> etree._Element | None:
    """Get the tracked span directly wrapping a run, if any."""
    parent = run.getparent()
    return parent if is_span(parent) else None


def span_runs(span: etree._Element) -> list[etree._Element]:
    """Get all runs inside a tracked span in document order."""
    return list(span.iter(w("r")))


def span_text(span: etree._Element) -> str:
    """Get the combined text of every run in a tracked span."""
    return "".join(run_text(run) for run in span_runs(span))


def clone_span_shell(span: etree._Element) -> etree._Element:
    """Create an empty span with the same tag and attributes."""
    clone = etree.Element(span.tag, nsmap=span.nsmap)
    for key, value in span.attrib.items():
        clone.set(key, value)
    return clone


def unwrap_element(element: etree._Element) -> None:
    """Unwrap an element by moving its children to its parent."""
    parent = element.getparent()
    if parent is None:
        return

    elem_index = parent.index(element)
    for child in list(element):
        parent.insert(elem_index, child)
        elem_index += 1

    parent.remove(element)


def remove_element(element: etree._Element) -> None:
    """Remove an element from its parent."""
    parent = element.getparent()
    if parent is not None:
        parent.remove(element)


def is_attached(element: etree._Element | None, root: etree._Element) -> bool:
    """Check whether an element is still part of the tree under ``root``."""
    current = element
    while current is not None:
        if current is root:
            return True
        current = current.getparent()
    return False


def paragraph_of(element: etree._Element) -> etree._Element | None:
    """Find the paragraph containing an element (or the element itself)."""
    current = element
    while current is not None:
        if is_paragraph(current):
            return current
        current = current.getparent()
    return None


def inline_children(paragraph: etree._Element) -> list[etree._Element]:
    """Get the content children of a paragraph, skipping w:pPr."""
    return [child for child in paragraph if child.tag != w("pPr")]


def iter_paragraphs(root: etree._Element) -> Iterator[etree._Element]:
    return root.iter(w("p"))


def iter_spans(root: etree._Element) -> Iterator[etree._Element]:
    return root.iter(w("ins"), w("del"))
