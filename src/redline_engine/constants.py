"""
Centralized constants for the document tree vocabulary and other magic values.

The document tree uses the WordprocessingML element names: paragraphs (w:p)
hold runs (w:r) whose text lives in w:t, tracked insertions are w:ins wrappers
and tracked deletions are w:del wrappers whose runs hold w:delText.
"""

# =============================================================================
# Namespaces
# =============================================================================

# Main WordprocessingML namespace (Word 2007+)
WORD_NAMESPACE = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

# Word 2012 namespace, used for the author's user id on tracked spans
W15_NAMESPACE = "http://schemas.microsoft.com/office/word/2012/wordml"

# XML namespace
XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"

NSMAP = {"w": WORD_NAMESPACE, "w15": W15_NAMESPACE}


# =============================================================================
# Revision presentation
# =============================================================================

REVISION_COLORS = {
    "insertion": {
        "bg": "#dbeafe",
        "text": "#1e40af",
        "underline": "#3b82f6",
    },
    "deletion": {
        "bg": "transparent",
        "text": "#3b82f6",
        "strikethrough": "#3b82f6",
    },
    "format": {
        "bg": "#fef3c7",
        "text": "#92400e",
        "border": "#f59e0b",
    },
}

# Timestamp format written to w:date attributes
DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Default characters of surrounding text in exported change context
CONTEXT_CHARS_DEFAULT = 40

# Formatting flags carried by runs, keyed by their w:rPr child element
FORMAT_FLAGS = {
    "bold": "b",
    "italic": "i",
    "underline": "u",
    "strikethrough": "strike",
}


# =============================================================================
# Helper Functions for Creating Qualified Names
# =============================================================================


def w(tag: str) -> str:
    """Create a fully qualified Word namespace tag.

    Args:
        tag: Tag name without namespace prefix (e.g., "p", "r", "t")

    Returns:
        Fully qualified tag (e.g., "{http://...wordprocessingml/2006/main}p")

    Example:
        >>> w("p")
        '{http://schemas.openxmlformats.org/wordprocessingml/2006/main}p'
    """
    return f"{{{WORD_NAMESPACE}}}{tag}"


def w15(tag: str) -> str:
    """Create a fully qualified Word 2012 namespace tag."""
    return f"{{{W15_NAMESPACE}}}{tag}"
