"""
SiteSketch - a conversational website builder with visual annotation.

This package contains the main application modules:
- annotation: Drawing overlay and the capture pipeline
- core: Application core, chat service, HTML extraction
- ui: Main window, chat and preview panels
- services: Application services (config, logging)
"""

__version__ = "0.1.0"
