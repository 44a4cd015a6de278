"""Per-render context passed through every extension hook"""

from dataclasses import dataclass, field
from typing import Any, Optional

from one2mp.config import Settings
from one2mp.core.host import NoteHost
from one2mp.core.render.side_channel import SideChannel


@dataclass
class RenderSession:
    """State for one note render. A new session replaces all per-render caches."""
    settings:     Settings
    side_channel: SideChannel
    host:         Optional[NoteHost] = None
    note_path:    str = ""
    frontmatter:  dict[str, Any] = field(default_factory=dict)
    for_upload:   bool = False
    counters:     dict[str, int] = field(default_factory=dict)
    cards:        dict[str, str] = field(default_factory=dict)    # card id -> authoritative markup
    links:        list[tuple[str, str]] = field(default_factory=list)  # (label, href), first-seen order

    def next_index(self, name: str) -> int:
        """Return the current encounter index for name and advance it."""
        index = self.counters.get(name, 0)
        self.counters[name] = index + 1
        return index
