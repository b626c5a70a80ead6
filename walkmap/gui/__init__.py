"""PyQt5 map widget, overlay renderer and viewport-driven obstacle sync."""
