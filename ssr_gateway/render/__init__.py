from .orchestrator import render_page
from .session import ABORT_DELAY, RenderSession

__all__ = ["ABORT_DELAY", "RenderSession", "render_page"]
