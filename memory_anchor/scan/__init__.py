"""Live scanning: frame source -> extractor -> matcher -> debounced state -> display.

The controller owns the only mutable recognition state; the display boundary only
ever sees transitions (emit-on-change).
"""

from __future__ import annotations
