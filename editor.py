import copy
import html
import logging
from typing import Any, Callable, Dict, Optional, Union

import httpx

from fetcher import bearer, fetcher
from models import Block, BlockDocument

lg = logging.getLogger(__name__)

HOLDER_ID = "editorjs"
PLACEHOLDER = "Start building your content here..."
UPLOAD_IMAGE = "/upload/image"
UPLOAD_IMAGE_URL = "/upload/image-url"

EDITOR_TOOLS = {
    "header": {"class": "Header"},
    "paragraph": {"class": "Paragraph"},
    "list": {"class": "List"},
    "image": {
        "class": "ImageTool",
        "config": {"endpoints": {"byFile": UPLOAD_IMAGE, "byUrl": UPLOAD_IMAGE_URL}},
    },
}


class EditorNotReady(Exception):
    pass


class BlockEditor:
    """
    Server-side handle of the browser block editor. It only stores the
    document the widget produced; blocks are never interpreted here.
    """

    def __init__(self, holder: str = HOLDER_ID, data: Optional[dict] = None, tools: dict = EDITOR_TOOLS):
        self.holder = holder
        self.tools = tools
        self.data = copy.deepcopy(data) if data else {"blocks": []}
        self.destroyed = False

    def render(self, data: dict):
        if self.destroyed:
            raise EditorNotReady("Editor instance was destroyed")
        self.data = copy.deepcopy(data)

    def save(self) -> dict:
        if self.destroyed:
            raise EditorNotReady("Editor instance was destroyed")
        return copy.deepcopy(self.data)

    def destroy(self):
        self.destroyed = True
        self.data = None

    def config(self) -> dict:
        return {"holder": self.holder, "tools": self.tools, "data": self.data, "placeholder": PLACEHOLDER}


class ContentEditorAdapter:
    def __init__(self, factory: Callable[..., BlockEditor] = BlockEditor):
        self.factory = factory
        self.widget: Optional[BlockEditor] = None
        self.constructed = 0

    @property
    def ready(self) -> bool:
        return self.widget is not None

    def mount(self, initial: Optional[Union[dict, BlockDocument]] = None) -> BlockEditor:
        # one widget per form lifetime
        if self.widget is not None:
            return self.widget
        if isinstance(initial, BlockDocument):
            initial = initial.model_dump(exclude_none=True)
        self.widget = self.factory(data=initial)
        self.constructed += 1
        return self.widget

    def load(self, document: dict):
        if self.widget is None:
            raise EditorNotReady("Editor is not mounted")
        self.widget.render(document)

    def save(self) -> dict:
        if self.widget is None:
            raise EditorNotReady("Editor is not mounted")
        return self.widget.save()

    def unmount(self):
        if self.widget is not None:
            self.widget.destroy()
            self.widget = None


# Image ingestion for the image tool
async def upload_image(token: str, filename: str, content: bytes, content_type: str = "application/octet-stream", client: Optional[httpx.AsyncClient] = None) -> Any:
    files = {"image": (filename, content, content_type)}
    return await fetcher(UPLOAD_IMAGE, method="POST", headers=bearer(token), files=files, client=client)


async def upload_image_url(token: str, url: str, client: Optional[httpx.AsyncClient] = None) -> Any:
    return await fetcher(UPLOAD_IMAGE_URL, method="POST", headers=bearer(token), json={"url": url}, client=client)


# Read path
def _text(value: Any) -> str:
    return html.escape(str(value)) if value is not None else ""


def render_header(block: Block) -> str:
    try:
        level = min(max(int(block.data.get("level", 2)), 1), 6)
    except (TypeError, ValueError):
        level = 2
    return f"<h{level}>{_text(block.data.get('text'))}</h{level}>"


def render_paragraph(block: Block) -> str:
    return f"<p>{_text(block.data.get('text'))}</p>"


def render_list(block: Block) -> str:
    items = block.data.get("items")
    if not isinstance(items, list):
        return '<p class="placeholder">Invalid list format</p>'
    tag = "ul" if block.data.get("style") == "unordered" else "ol"
    rendered = []
    for item in items:
        content = item.get("content") if isinstance(item, dict) else item
        rendered.append(f"<li>{_text(content) if content else 'Empty item'}</li>")
    return f"<{tag}>{''.join(rendered)}</{tag}>"


RENDERERS: Dict[str, Callable[[Block], str]] = {
    "header": render_header,
    "paragraph": render_paragraph,
    "list": render_list,
}


def render_block(block: Block) -> str:
    renderer = RENDERERS.get(block.type)
    if renderer is None:
        return f'<p class="placeholder">Unsupported block type: {_text(block.type)}</p>'
    return renderer(block)


def render_blocks(document: Optional[Union[BlockDocument, dict]]) -> str:
    if document is None:
        return ""
    if isinstance(document, dict):
        document = BlockDocument.model_validate(document)
    return "\n".join(render_block(block) for block in document.blocks)
